from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum


# =========================
# ENUMS (shared, canonical)
# =========================

class PrescriptionStatus(str, Enum):
    active = "active"
    suspended = "suspended"
    completed = "completed"


class TherapyType(str, Enum):
    oral = "oral"
    enteral = "enteral"
    parenteral = "parenteral"


class SystemType(str, Enum):
    open = "open"
    closed = "closed"


class InfusionMode(str, Enum):
    pump = "pump"
    gravity = "gravity"
    bolus = "bolus"


class SupplyType(str, Enum):
    bottle = "bottle"
    set = "set"
    other = "other"


class FormulaType(str, Enum):
    standard = "standard"
    high_protein = "high-protein"
    high_calorie = "high-calorie"
    diabetic = "diabetic"
    renal = "renal"
    peptide = "peptide"
    fiber = "fiber"
    immune = "immune"


class FormulaSystemType(str, Enum):
    open = "open"
    closed = "closed"
    both = "both"


class DietItemType(str, Enum):
    formula = "formula"
    module = "module"
    water = "water"
    supplement = "supplement"


class ConsolidatedItemType(str, Enum):
    formula = "formula"
    module = "module"
    supply = "supply"
    diet = "diet"


# =========================
# CATALOG CONTRACTS
# =========================

class FormulaComposition(BaseModel):
    # values per 100 ml
    calories: float = 0.0
    protein: float = 0.0
    carbohydrates: float = 0.0
    fat: float = 0.0
    fiber: Optional[float] = None
    sodium: Optional[float] = None
    potassium: Optional[float] = None
    calcium: Optional[float] = None
    phosphorus: Optional[float] = None
    osmolality: Optional[float] = None
    water_content: Optional[float] = None


class Formula(BaseModel):
    id: str
    code: str = ""
    name: str
    manufacturer: str = ""
    type: FormulaType = FormulaType.standard
    system_type: FormulaSystemType = FormulaSystemType.both
    presentations: List[float] = Field(default_factory=list)
    billing_unit: Optional[str] = None
    billing_price: Optional[float] = None
    composition: FormulaComposition = Field(default_factory=FormulaComposition)
    indications: List[str] = Field(default_factory=list)
    contraindications: List[str] = Field(default_factory=list)
    special_features: List[str] = Field(default_factory=list)
    is_active: bool = True


class Module(BaseModel):
    id: str
    name: str
    billing_unit: Optional[str] = None
    billing_price: Optional[float] = None
    calories: float = 0.0
    protein: float = 0.0
    carbs: Optional[float] = None
    fat: Optional[float] = None
    sodium: float = 0.0
    potassium: float = 0.0
    fiber: float = 0.0
    free_water: float = 0.0
    is_active: bool = True


class Supply(BaseModel):
    id: Optional[str] = None
    code: str
    name: str
    type: SupplyType
    billing_unit: Optional[str] = None
    capacity_ml: Optional[float] = None
    unit_price: float = 0.0
    is_active: bool = True


# =========================
# PRESCRIPTIONS
# =========================

class PrescriptionFormula(BaseModel):
    formula_id: str
    formula_name: str
    volume: float
    times_per_day: int = 0
    schedules: List[str] = Field(default_factory=list)


class PrescriptionModule(BaseModel):
    module_id: str
    module_name: str
    amount: float
    unit: Optional[str] = None
    times_per_day: int = 0
    schedules: Optional[List[str]] = None


class Prescription(BaseModel):
    id: Optional[str] = None
    patient_id: str
    patient_name: str
    patient_record: str = ""
    patient_bed: Optional[str] = None
    patient_ward: Optional[str] = None
    therapy_type: TherapyType = TherapyType.enteral
    system_type: SystemType = SystemType.closed
    feeding_route: Optional[str] = None
    infusion_mode: Optional[InfusionMode] = None
    infusion_rate_ml_h: Optional[float] = None
    formulas: List[PrescriptionFormula] = Field(default_factory=list)
    modules: List[PrescriptionModule] = Field(default_factory=list)
    hydration_volume: Optional[float] = None
    hydration_schedules: Optional[List[str]] = None
    status: PrescriptionStatus = PrescriptionStatus.active
    start_date: datetime
    end_date: Optional[datetime] = None


# =========================
# REQUISITION OUTPUT
# =========================

class DietMapItem(BaseModel):
    patient_id: str
    patient_name: str
    bed: str
    ward: str
    dob: Optional[str] = None
    route: str
    type: DietItemType
    product_name: str
    volume_or_amount: float
    unit: str
    rate: Optional[str] = None
    times: List[str]
    product_code: Optional[str] = None


class ConsolidatedItem(BaseModel):
    code: str
    name: str
    billing_unit: str
    total_quantity: float
    unit_price: float
    subtotal: float
    type: ConsolidatedItemType


class Signatures(BaseModel):
    technician: str = ""
    prescriber: str = ""
    manager: str = ""


class RequisitionData(BaseModel):
    unit_name: str
    start_date: str
    end_date: str
    print_date: str
    selected_times: List[str]
    diet_map: List[DietMapItem]
    consolidated: List[ConsolidatedItem]
    signatures: Signatures


# =========================
# EXTERNAL PRODUCT DATA
# =========================

class NutritionalData(BaseModel):
    product_id: str
    product_name: str
    manufacturer: str
    composition: FormulaComposition
    last_updated: datetime
    source: str


class Presentation(BaseModel):
    size: float  # ml
    unit_price: float
    currency: str = "BRL"
    supplier: str = ""
    internal_code: Optional[str] = None


class PricingData(BaseModel):
    product_id: str
    product_name: str
    presentations: List[Presentation] = Field(default_factory=list)
    expiration_date: Optional[datetime] = None
    last_updated: datetime
    source: str


class SyncResult(BaseModel):
    success: bool = False
    items_updated: int = 0
    items_added: int = 0
    items_failed: int = 0
    errors: List[str] = Field(default_factory=list)
    last_sync: datetime


# =========================
# HISTORICAL CASES
# =========================

class CaseOutcome(BaseModel):
    weight_change: float
    albumin_change: float
    complications: bool
    length_of_stay: int
    tolerance_score: float  # 1-10
    success_score: float  # 1-10


class HistoricalCase(BaseModel):
    patient_id: str
    age: float
    weight: float
    height: float
    diagnosis: str
    comorbidities: List[str] = Field(default_factory=list)
    prescribed_formula: str
    prescribed_volume: float
    infusion_rate: float
    system_type: SystemType
    administration_route: str
    days_on_therapy: int
    outcome: CaseOutcome


# =========================
# CLINICAL PROFILE
# =========================

class PatientProfile(BaseModel):
    age: float
    weight: float  # kg
    height: float  # cm
    gender: str = "male"
    diagnosis: str = ""
    comorbidities: List[str] = Field(default_factory=list)
    administration_route: TherapyType = TherapyType.enteral
    restrictions: List[str] = Field(default_factory=list)
    clinical_condition: str = "stable"  # critical | moderate | stable
    renal_function: str = "normal"  # normal | impaired | dialysis
    hepatic_function: str = "normal"  # normal | impaired
    diabetic: bool = False
    allergies: List[str] = Field(default_factory=list)
    stress_level: str = "moderate"  # low | moderate | high | severe
