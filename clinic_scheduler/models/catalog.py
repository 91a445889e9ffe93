from sqlmodel import Field, SQLModel


class Specialty(SQLModel, table=True):
    __tablename__ = "specialties"
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)


class Doctor(SQLModel, table=True):
    __tablename__ = "doctors"
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    specialty_id: int | None = Field(default=None, foreign_key="specialties.id", index=True)
