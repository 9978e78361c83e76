"""
Logical symbol grid.

The grid is indexed `grid[reel][row]`: one column per reel, `visible_rows` cells per column.
Rendering reads from it; nothing in here knows about animation or pixel offsets.
"""


class Grid:
    def __init__(self, columns):
        columns = [list(col) for col in columns]
        if not columns:
            raise ValueError("Grid needs at least one reel.")
        rows = len(columns[0])
        if rows == 0 or any(len(col) != rows for col in columns):
            raise ValueError("Every reel of the grid must have the same, non-zero number of rows.")
        self._columns = columns

    @classmethod
    def from_rows(cls, rows):
        """Builds a grid from row-major data (`rows[row][reel]`)."""
        return cls([list(col) for col in zip(*rows)])

    @property
    def reel_count(self):
        return len(self._columns)

    @property
    def row_count(self):
        return len(self._columns[0])

    def get_cell(self, reel, row):
        return self._columns[reel][row]

    def set_cell(self, reel, row, symbol):
        if not (0 <= reel < self.reel_count and 0 <= row < self.row_count):
            raise IndexError(f"Cell ({reel}, {row}) is outside a {self.reel_count}x{self.row_count} grid.")
        self._columns[reel][row] = symbol

    def copy(self):
        return Grid(self._columns)

    def to_list(self):
        return [list(col) for col in self._columns]

    def __getitem__(self, reel):
        # Read-only column view so `grid[reel][row]` works like a nested list.
        return tuple(self._columns[reel])

    def __len__(self):
        return self.reel_count

    def __iter__(self):
        return (tuple(col) for col in self._columns)

    def __eq__(self, other):
        if isinstance(other, Grid):
            return self._columns == other._columns
        if isinstance(other, list):
            return self._columns == [list(col) for col in other]
        return NotImplemented

    def __repr__(self):
        return f"<Grid {self.reel_count}x{self.row_count} {self._columns}>"
