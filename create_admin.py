import sys
import psycopg2
from rentalops.core.security import hash_password
from rentalops.core.config import settings
from rentalops.core.enums import UserRole
from urllib.parse import urlparse

# Self-registration only creates customers; operations accounts come from here
PROVISIONED_ROLES = {UserRole.ADMIN.value: UserRole.ADMIN, UserRole.STAFF.value: UserRole.STAFF}


def create_operations_user(username: str, password: str, role: UserRole) -> bool:
    try:
        db_url = urlparse(settings.DATABASE_URL.replace("postgresql+asyncpg://", "postgresql://"))

        conn = psycopg2.connect(
            host=db_url.hostname or "localhost",
            port=db_url.port or 5432,
            user=db_url.username or "postgres",
            password=db_url.password or "postgres",
            database=db_url.path.lstrip("/") or "postgres"
        )

        cursor = conn.cursor()

        cursor.execute("SELECT id FROM users WHERE username = %s", (username,))
        if cursor.fetchone():
            print(f"Error: User '{username}' already exists")
            cursor.close()
            conn.close()
            return False

        # SQLAlchemy stores Enum columns by member name
        cursor.execute(
            "INSERT INTO users (username, password_hash, role, created_at) "
            "VALUES (%s, %s, %s, NOW()) RETURNING id",
            (username, hash_password(password), role.name)
        )

        user_id = cursor.fetchone()[0]
        conn.commit()

        print(f"User '{username}' created successfully")
        print(f"User ID: {user_id}")
        print(f"Role: {role}")

        cursor.close()
        conn.close()
        return True

    except Exception as e:
        print(f"Error creating user: {str(e)}")
        return False


def main():
    if len(sys.argv) < 3:
        print("Usage: python create_admin.py <username> <password> [admin|staff]")
        sys.exit(1)

    username = sys.argv[1]
    password = sys.argv[2]
    role_name = sys.argv[3] if len(sys.argv) > 3 else UserRole.ADMIN.value

    if not username or not password:
        print("Error: username and password cannot be empty")
        sys.exit(1)

    if role_name not in PROVISIONED_ROLES:
        print(f"Error: role must be one of {', '.join(PROVISIONED_ROLES)}")
        sys.exit(1)

    success = create_operations_user(username, password, PROVISIONED_ROLES[role_name])
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
