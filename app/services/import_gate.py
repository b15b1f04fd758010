from app.core.constants import ALWAYS_REQUIRED_FIELDS, REFERENCE_FIELD
from app.core.errors import DuplicateError, ValidationError
from app.services.product_service import ProductRepository, build_product_values
from app.services.workbook_reader import is_blank


class ImportGate:
    """Decides whether a materialized row is created, skipped or rejected.

    ``check`` returns the product values for an accepted row and raises
    ``ValidationError`` (reject) or ``DuplicateError`` (skip) otherwise.
    """

    def __init__(self, products: ProductRepository, required_fields, reference_field=REFERENCE_FIELD):
        self.products = products
        self.reference_field = reference_field
        self.required_fields = tuple(dict.fromkeys((*required_fields, *ALWAYS_REQUIRED_FIELDS, reference_field)))

    def missing_fields(self, record):
        missing = []
        for field in self.required_fields:
            if field == self.reference_field:
                if record.reference_id is None:
                    missing.append(field)
            elif is_blank(record.fields.get(field)):
                missing.append(field)
        return missing

    def check(self, record):
        missing = self.missing_fields(record)
        if missing:
            raise ValidationError(
                "row {}: missing required fields: {}".format(record.sheet_row, ", ".join(missing)),
                missing_fields=missing,
            )
        try:
            values = build_product_values(record.fields, record.reference_id)
        except ValueError as exc:
            raise ValidationError(f"row {record.sheet_row}: {exc}") from exc

        if self.products.find_by_name(values["name"]) is not None:
            raise DuplicateError(values["name"])
        return values


__all__ = ["ImportGate"]
