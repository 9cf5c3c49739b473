"""
Property value service for decoding worksheet cells into property values.

Scalar properties take the cell text verbatim. Repeating (tabular) properties
use a small encoding that packs a header value and row/field assignments
into one cell, for example::

    1 Row;AssignmentsOnEnteringStateVariableName;ModelEntity.Picture~AssignmentsOnEnteringNewValue;1

Segments are separated by ``~``. Each segment is split on ``;``:

- In the first segment, three or more fields means the first field is the
  property's own header value.
- Any segment with two or more fields assigns ``value`` (last field) to the
  sub-property named by the second-to-last field. With three or more fields,
  the third-from-last field may be a 1-based row number.
"""

from typing import List, NamedTuple, Optional

from backend.models.facility import Property, PropertyRow, RepeatingProperty

SEGMENT_SEPARATOR = '~'
FIELD_SEPARATOR = ';'


class DecodeResult(NamedTuple):
    """Outcome of decoding one cell; ``explanation`` is set on failure."""
    success: bool
    explanation: str = ''


class PropertyValueCoder:
    """Decode cell text into scalar or repeating property values."""

    def decode(self, prop: Property, cell_value: str) -> DecodeResult:
        """
        Assign a cell's text to a property.

        Never raises: any error while assigning is returned as a failed
        DecodeResult naming the property, the raw value and the error.
        """
        try:
            if isinstance(prop, RepeatingProperty):
                self._decode_repeating(prop, cell_value)
            else:
                prop.value = cell_value
            return DecodeResult(True)
        except Exception as e:
            return DecodeResult(False, f"Property={prop.name} Value={cell_value} Err={e!r}")

    @staticmethod
    def split_segments(cell_value: str) -> List[List[str]]:
        """Split encoded text into segments of fields."""
        return [segment.split(FIELD_SEPARATOR) for segment in cell_value.split(SEGMENT_SEPARATOR)]

    @staticmethod
    def parse_row_number(fields: List[str]) -> Optional[int]:
        """
        Row number carried by a field assignment, if any.

        Only assignments with at least three fields carry one, in the
        third-from-last position; text that is not an integer means none.
        """
        if len(fields) <= 2:
            return None
        try:
            return int(fields[-3])
        except ValueError:
            return None

    def _decode_repeating(self, prop: RepeatingProperty, cell_value: str):
        previous_row_number = -1

        for index, fields in enumerate(self.split_segments(cell_value)):
            # The header and a row assignment can both come from segment 0
            if index == 0 and len(fields) > 2:
                prop.value = fields[0]

            if len(fields) < 2:
                continue

            row_number = self.parse_row_number(fields)
            if row_number is not None and row_number > previous_row_number:
                previous_row_number = row_number
                row = self._row_for_number(prop, row_number)
            else:
                row = self._last_row(prop)

            self._assign_field(row, fields[-2], fields[-1])

    @staticmethod
    def _row_for_number(prop: RepeatingProperty, row_number: int) -> PropertyRow:
        # A number past the end appends exactly one row, whatever its value
        if row_number > len(prop.rows):
            return prop.rows.create()
        return prop.rows[row_number - 1]

    @staticmethod
    def _last_row(prop: RepeatingProperty) -> PropertyRow:
        if len(prop.rows) == 0:
            return prop.rows.create()
        return prop.rows[len(prop.rows) - 1]

    @staticmethod
    def _assign_field(row: PropertyRow, field_name: str, value: str):
        # Exact, case-sensitive match; unknown fields are ignored
        for field in row.properties:
            if field.name == field_name:
                field.value = value
                break
