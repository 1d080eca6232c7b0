import os
from dotenv import load_dotenv

load_dotenv()

user = os.getenv("DB_USER")
password = os.getenv("DB_PASSWORD")
host = os.getenv("DB_HOST")
port = os.getenv("DB_PORT")
db_name = os.getenv("DB_NAME")
pepper_data = os.getenv("PEPPER_DATA", "")

database_backend = os.getenv("DATABASE_BACKEND", "sqlite")
sqlite_path = os.getenv("SQLITE_PATH")
redis_host = os.getenv("REDIS_HOST", "redis")
redis_port = int(os.getenv("REDIS_PORT", "6379"))

# "sql" keeps sessions in the database, "memory" keeps them in this process only
session_store_backend = os.getenv("SESSION_STORE", "sql")
# Fix every new session to one variant ("tictactoe" or "bingo"); empty lets players choose
default_variant = os.getenv("DEFAULT_VARIANT") or None
chat_max_length = int(os.getenv("CHAT_MAX_LENGTH", "500"))
attach_max_attempts = int(os.getenv("ATTACH_MAX_ATTEMPTS", "3"))

if __name__ == "__main__":
    print(user, host, port, db_name, database_backend, redis_host, redis_port)
