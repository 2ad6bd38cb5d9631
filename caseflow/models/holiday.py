"""
Case Schedule Engine
Holiday calendar model.

One row per (country_code, date). Read by DbHolidayLookup; weekends are not
stored - the business-day calculator handles them.
"""

from caseflow.models import db


class Holiday(db.Model):
    __tablename__ = "holidays"
    __table_args__ = (
        db.UniqueConstraint("country_code", "date", name="uq_holiday_country_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    country_code = db.Column(db.String(2), nullable=False, index=True, comment="ISO 3166-1 alpha-2")
    date = db.Column(db.Date, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "country_code": self.country_code,
            "date": self.date.isoformat() if self.date else None,
            "name": self.name,
        }

    def __repr__(self):
        return f"<Holiday {self.country_code} {self.date} {self.name or ''}>"
