"""Top-level package for the Capital personal finance dashboard.

The primary modules are:

* ``budgets`` – monthly category limits, spending status and summary
* ``goals`` – savings goals with progress, deadline and monthly plan
* ``investments`` – investment lots, revaluation and portfolio summary
* ``allocation`` – earmarking investment value (or cash) for goals
* ``state`` / ``session`` – state transitions and the per-user session
* ``visualization`` – functions that generate Plotly figures

To run the dashboard from the command line you can execute:

```bash
streamlit run capital_dashboard/Home.py
```

or use ``run_dashboard.py`` at the project root.
"""

from . import allocation  # noqa: F401  # re-exported for convenience
from . import budgets  # noqa: F401  # re-exported for convenience
from . import goals  # noqa: F401  # re-exported for convenience
from . import investments  # noqa: F401  # re-exported for convenience

__all__ = ["allocation", "budgets", "goals", "investments"]
