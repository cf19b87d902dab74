from layercache.cli import main

raise SystemExit(main())
