from evalpane.cli import main

raise SystemExit(main())
