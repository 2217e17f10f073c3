from typing import Dict, List

DATASET_SPECS: Dict[str, List[str]] = {

    "prescriptions": [
        "prescription_id",
        "patient_id",
        "patient_name",
        "status",
        "system_type",
        "start_date",
    ],

    "prescription_formulas": [
        "prescription_id",
        "formula_id",
        "formula_name",
        "volume",
        "schedules",
    ],

    "prescription_modules": [
        "prescription_id",
        "module_id",
        "module_name",
        "amount",
    ],

    "formulas": [
        "id",
        "name",
        "presentations",
    ],

    "modules": [
        "id",
        "name",
    ],

    "supplies": [
        "code",
        "name",
        "type",
        "unit_price",
    ],
}

# Cells holding lists are stored pipe-separated, e.g. "09:00|21:00"
LIST_SEPARATOR = "|"
