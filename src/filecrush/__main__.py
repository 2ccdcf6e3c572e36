from filecrush.cli import main

raise SystemExit(main())
