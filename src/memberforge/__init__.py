"""memberforge: business-rule validation and CRUD orchestration for membership records."""

__version__ = "0.1.0"
