import enum

class Role(str, enum.Enum):
    admin = "admin"
    seller = "seller"
    buyer = "buyer"

class ProductStatus(str, enum.Enum):
    draft = "draft"
    active = "active"
    archived = "archived"

class InvitationStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    expired = "expired"
    cancelled = "cancelled"

class GrantStatus(str, enum.Enum):
    active = "active"
    revoked = "revoked"

class WholesaleOrderStatus(str, enum.Enum):
    pending = "pending"
    deposit_paid = "deposit_paid"
    awaiting_balance = "awaiting_balance"
    balance_overdue = "balance_overdue"
    paid = "paid"
    processing = "processing"
    fulfilled = "fulfilled"
    cancelled = "cancelled"

class QuotationStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    viewed = "viewed"
    accepted = "accepted"
    deposit_paid = "deposit_paid"
    balance_due = "balance_due"
    fully_paid = "fully_paid"
    completed = "completed"
    cancelled = "cancelled"
    expired = "expired"

class Incoterm(str, enum.Enum):
    exw = "EXW"
    fca = "FCA"
    fas = "FAS"
    fob = "FOB"
    cfr = "CFR"
    cif = "CIF"
    cpt = "CPT"
    cip = "CIP"
    dap = "DAP"
    dpu = "DPU"
    ddp = "DDP"
    other = "Other"

class PaymentType(str, enum.Enum):
    deposit = "deposit"
    balance = "balance"

class PaymentScheduleStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    paid = "paid"
    cancelled = "cancelled"
