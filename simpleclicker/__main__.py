from .gui import main

raise SystemExit(main())
