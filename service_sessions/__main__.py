from service_sessions.app.cli import main

raise SystemExit(main())
