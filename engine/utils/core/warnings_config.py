"""
Warning filters for loading vendor-edited workbooks.

Files saved by Excel, LibreOffice or Google Sheets routinely carry header /
footer codes, extensions and style tables openpyxl does not understand; the
warnings say nothing about the answers we read.
"""

import warnings


# (message regex, emitting module regex)
OPENPYXL_NOISE = (
    ("Cannot parse header or footer", r"openpyxl\.worksheet\.header_footer"),
    (r".*extension is not supported and will be removed", r"openpyxl\.worksheet\._reader"),
    ("Workbook contains no default style", r"openpyxl\.styles\.stylesheet"),
)


def configure_warning_filters() -> None:
    """Silence known noisy openpyxl warnings. Idempotent."""
    for message, module in OPENPYXL_NOISE:
        warnings.filterwarnings("ignore", message=message, module=module)
