from sqlalchemy import create_engine, Column, Integer, String, Float, Date
from sqlalchemy.orm import sessionmaker, declarative_base

from settings import DATABASE_URL, DB_TIMEOUT_SECONDS

FIXED = "Fixed"
VARIABLE = "Variable"
TRANSACTION_TYPES = (FIXED, VARIABLE)
DEFAULT_CATEGORY = "Other"


def make_engine(url: str = DATABASE_URL):
    # Default to local SQLite, but allow override for a hosted Postgres
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": DB_TIMEOUT_SECONDS})
    return create_engine(url, pool_timeout=DB_TIMEOUT_SECONDS, pool_pre_ping=True)


engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# --- Models ---

class BudgetPeriod(Base):
    """The active budget. At most one row exists at a time."""

    __tablename__ = "budget_config"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)   # inclusive
    principal = Column(Float, nullable=False)

    # Cached aggregates, kept equal to the ledger sum by the write path
    fixed_spent = Column(Float, default=0.0, nullable=False)
    variable_spent = Column(Float, default=0.0, nullable=False)

    status = Column(String, default="Active")

    def __repr__(self):
        return f"<BudgetPeriod {self.name} {self.start_date}..{self.end_date} principal={self.principal}>"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    item = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    category = Column(String, default=DEFAULT_CATEGORY)
    type = Column(String, default=VARIABLE)     # 'Fixed' or 'Variable'

    # Month bucket, e.g. '2024-03'
    period = Column(String, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "item": self.item,
            "amount": self.amount,
            "category": self.category or DEFAULT_CATEGORY,
            "type": self.type or VARIABLE,
        }


# --- Init DB ---
def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
