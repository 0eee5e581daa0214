from weblog_data.database.engine import create_data, create_sql_engine

__all__ = ["create_data", "create_sql_engine"]
