from dotenv import load_dotenv

from .core_services.Database import Database
from .core_services.MySqlDatabase import MySqlDatabase
from .core_services.Sqlite3Database import Sqlite3Database
from .database.ActiveRecord import ActiveRecord, ActiveRecordMeta
from .database.Associations import BelongsTo, HasOne, HasMany, HasAndBelongsToMany
from .database.Exceptions import (
    ActiveRecordError,
    AssociationError,
    FrozenRecordError,
    InvalidFindOptions,
    NestedScopeError,
    ReadOnlyRecord,
    RecordNotFound,
)
from .database.QueryBuilder import QueryBuilder, Raw
from .database.active_record.Logging import query_logging
from .database.active_record.utils.decorators import on
from .database.fields.Fields import BooleanField, CharField, DateTimeField, Field, IntegerField, TextField
from .database.mixins.ParanoidMixin import Paranoid
from .database.paranoid.Registry import ParanoidRegistry

load_dotenv()
