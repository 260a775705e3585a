from snippet_runner.cli import main

raise SystemExit(main())
