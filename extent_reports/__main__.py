"""
Run the ExtentReports CLI with ``python -m extent_reports``.

Example:
    python -m extent_reports record results.yaml --out report.html
    python -m extent_reports inspect report.html
"""

from extent_reports.cli import main

if __name__ == "__main__":
    main()
