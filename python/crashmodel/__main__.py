from crashmodel.cli import main

raise SystemExit(main())
