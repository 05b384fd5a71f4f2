"""Allow ``python -m haikuagent``."""

from haikuagent.cli import main

raise SystemExit(main())
