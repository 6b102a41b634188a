# import all models for Alembic
from app.db.models.organization import Organization
from app.db.models.user import User
from app.db.models.data_import import DataImport
from app.db.models.data_import_column import DataImportColumn
from app.db.models.data_import_row import DataImportRow
from app.db.models.data_file_change import DataFileChange
