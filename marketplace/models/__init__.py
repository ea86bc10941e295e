"""Central model registry: import all models so Alembic autodiscover works."""

from marketplace.database import Base  # noqa: F401

from marketplace.models.user import User  # noqa: F401
from marketplace.models.supplier import Supplier  # noqa: F401
from marketplace.models.rfq import Rfq  # noqa: F401
from marketplace.models.quotation import Quotation  # noqa: F401
from marketplace.models.order import Order  # noqa: F401
from marketplace.models.sample_request import SampleRequest  # noqa: F401
from marketplace.models.supplier_question import SupplierQuestion  # noqa: F401
from marketplace.models.audit_log import AuditLog  # noqa: F401
