import sqlite3

DEFAULT_DB_FILE = "catalog.db"


def get_db_connection(db_file: str = DEFAULT_DB_FILE) -> sqlite3.Connection:
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(db_file)
    conn.row_factory = sqlite3.Row
    return conn


def create_tables(db_file: str = DEFAULT_DB_FILE) -> None:
    """Creates the necessary tables in the database if they don't exist."""
    conn = get_db_connection(db_file)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                author TEXT,
                isbn TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # book_id is a plain reference: copies may outlive the book they point at.
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS book_instances (
                id TEXT PRIMARY KEY,
                book_id TEXT NOT NULL,
                imprint TEXT NOT NULL,
                status TEXT NOT NULL,
                due_back TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_book_instances_book_id ON book_instances(book_id)")
        conn.commit()
    finally:
        conn.close()


def initialize_database(db_file: str = DEFAULT_DB_FILE) -> None:
    """Initializes the database, creating tables if needed."""
    create_tables(db_file)
