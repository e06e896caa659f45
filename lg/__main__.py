from lg.cli.main import main

raise SystemExit(main())
