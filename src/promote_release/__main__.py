from promote_release.cli import main

raise SystemExit(main())
