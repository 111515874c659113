from appflake.cli import main

raise SystemExit(main())
