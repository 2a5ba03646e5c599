from __future__ import annotations

from nano_agent.runtime.cli import main

raise SystemExit(main())
