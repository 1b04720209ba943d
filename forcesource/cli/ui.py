"""Format and display CLI output.

Classes:
    CliTable: Pretty prints tabular data to stdout, via Rich's Console API
"""
from typing import Any, List

import rich
from rich import box
from rich.console import Console
from rich.table import Column, Table


class CliTable:
    """Format and print rows to the command line in tabular form.

    ``data`` holds the heading as its 0-th member. True boolean cells show
    as ``PICTOGRAM_TRUE``.
    """

    PICTOGRAM_TRUE = "[yellow]!"
    PICTOGRAM_FALSE = " "

    def __init__(self, data: List[List[Any]], title: str = None, **kwargs):
        headers = [Column(header=self._stringify_cell(h), overflow="fold") for h in data[0]]
        self._table: Table = Table(*headers, title=title, box=box.SIMPLE, **kwargs)
        for row in data[1:]:
            self._table.add_row(*[self._stringify_cell(cell) for cell in row])

    def _stringify_cell(self, cell: Any) -> str:
        if isinstance(cell, bool):
            cell = self.PICTOGRAM_TRUE if cell else self.PICTOGRAM_FALSE
        elif cell is None:
            cell = ""
        else:
            cell = str(cell)
        return cell

    def __rich__(self) -> Table:
        return self._table

    def echo(self, plain=False):
        """Print this table to the global Console using console.print()."""
        orig_box = self._table.box
        if plain:
            self._table.box = box.ASCII2
        rich.get_console().print(self._table)
        self._table.box = orig_box

    @property
    def table(self):
        return self._table

    def __str__(self):
        from io import StringIO

        console = Console(file=StringIO(), width=200)
        console.print(self._table)
        return console.file.getvalue()


def rows_table(rows: List[dict], columns: List[str], title: str = None) -> CliTable:
    """A table of ``columns`` picked from each row dict."""
    return CliTable([columns] + [[row.get(column) for column in columns] for row in rows], title=title)
