import sqlite3
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional
from pathlib import Path
from fastapi import Request
from models.types import (
    Comment,
    DEFAULT_AVATAR_URL,
    DEFAULT_BIO,
    Feedback,
    PLACEHOLDER_IMAGE_URL,
    Rating,
    RatingSummary,
    Recipe,
    ToggleResult,
    UserInDB,
    UserProfile,
    UserPublic,
)
from core.errors import NotFound, ValidationError
from core.password import dummy_verify, get_password_hash, needs_rehash, verify_password
from logic.validation import INVALID_REGISTRATION_MSG
import logging
import json

logger = logging.getLogger(__name__)

# ISO-8601 UTC with milliseconds, so ordering by time rarely ties
NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

# Recipe ids per IN (...) query when attaching ratings and comments
HYDRATE_BATCH_SIZE = 500


class DatabaseManager:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.init_database()

    @contextmanager
    def get_connection(self):
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_database(self):
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT UNIQUE NOT NULL,
                    name TEXT NOT NULL,
                    hashed_password TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'user',
                    bio TEXT,
                    avatar_url TEXT,
                    created_at TEXT DEFAULT ({NOW_SQL})
                )
            """)
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS recipes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    description TEXT,
                    image_url TEXT NOT NULL,
                    ingredients TEXT NOT NULL,
                    steps TEXT,
                    cooking_time REAL,
                    created_by INTEGER,
                    created_at TEXT DEFAULT ({NOW_SQL}),
                    updated_at TEXT DEFAULT ({NOW_SQL}),
                    FOREIGN KEY (created_by) REFERENCES users (id)
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_recipes_created_by ON recipes(created_by, created_at DESC)")

            # One rating per (recipe, user); the upsert relies on this constraint
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS ratings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipe_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    value INTEGER NOT NULL CHECK(value >= 1 AND value <= 5),
                    created_at TEXT DEFAULT ({NOW_SQL}),
                    updated_at TEXT DEFAULT ({NOW_SQL}),
                    UNIQUE(recipe_id, user_id),
                    FOREIGN KEY (recipe_id) REFERENCES recipes (id),
                    FOREIGN KEY (user_id) REFERENCES users (id)
                )
            """)
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS comments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recipe_id INTEGER NOT NULL,
                    user_id INTEGER,
                    user_name TEXT NOT NULL,
                    text TEXT NOT NULL,
                    created_at TEXT DEFAULT ({NOW_SQL}),
                    FOREIGN KEY (recipe_id) REFERENCES recipes (id),
                    FOREIGN KEY (user_id) REFERENCES users (id)
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_comments_recipe ON comments(recipe_id, id)")

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS saved_recipes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    recipe_id INTEGER NOT NULL,
                    created_at TEXT DEFAULT ({NOW_SQL}),
                    UNIQUE(user_id, recipe_id),
                    FOREIGN KEY (user_id) REFERENCES users (id),
                    FOREIGN KEY (recipe_id) REFERENCES recipes (id)
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_saved_user_created ON saved_recipes(user_id, created_at DESC)")
        logger.info(f"Database ready at {self.db_path}")

    # --- Users ---
    def create_user(self, name: str, email: str, password: str) -> UserPublic:
        """
        Inserts a new user with a bcrypt hash of the password. An existing
        email gives the same error, and costs the same hash, as a fresh one.
        """
        hashed_password = get_password_hash(password)
        if self.get_user_by_email(email):
            raise ValidationError(INVALID_REGISTRATION_MSG)

        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO users (email, name, hashed_password) VALUES (?, ?, ?)",
                    (email, name, hashed_password)
                )
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError:
            # lost a race against a concurrent registration for the same email
            raise ValidationError(INVALID_REGISTRATION_MSG)
        return self.get_user_by_id(user_id)

    def authenticate_user(self, email: str, password: str) -> Optional[UserPublic]:
        user = self.get_user_by_email(email)
        if not user:
            dummy_verify()
            return None

        if not verify_password(password, user.hashed_password):
            return None

        if needs_rehash(user.hashed_password):
            self.update_password(user.id, get_password_hash(password))

        return UserPublic(**user.model_dump())

    def get_user_by_email(self, email: str) -> Optional[UserInDB]:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            return UserInDB(**dict(row)) if row else None

    def get_user_by_id(self, user_id: int) -> Optional[UserPublic]:
        with self.get_connection() as conn:
            row = conn.execute("SELECT id, name, email, role FROM users WHERE id = ?", (user_id,)).fetchone()
            return UserPublic(**dict(row)) if row else None

    def get_user_profile(self, user_id: int) -> Optional[UserProfile]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT id, name, email, bio, avatar_url FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        if not row:
            return None
        return UserProfile(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            bio=row["bio"] or DEFAULT_BIO,
            avatar=row["avatar_url"] or DEFAULT_AVATAR_URL,
        )

    def update_password(self, user_id: int, new_hashed_password: str):
        with self.get_connection() as conn:
            conn.execute(
                "UPDATE users SET hashed_password = ? WHERE id = ?",
                (new_hashed_password, user_id)
            )
        logger.info(f"Password hash for user {user_id} upgraded.")

    # --- Recipes ---
    def _hydrate(self, conn: sqlite3.Connection, rows: Iterable[sqlite3.Row]) -> List[Recipe]:
        """Builds Recipe models with their ratings and comments attached."""
        rows = list(rows)
        if not rows:
            return []
        ids = [row["id"] for row in rows]

        ratings: Dict[int, List[Rating]] = {rid: [] for rid in ids}
        comments: Dict[int, List[Comment]] = {rid: [] for rid in ids}
        # sqlite caps bound parameters per statement
        for start in range(0, len(ids), HYDRATE_BATCH_SIZE):
            batch = ids[start:start + HYDRATE_BATCH_SIZE]
            marks = ",".join("?" * len(batch))
            for r in conn.execute(
                f"SELECT recipe_id, user_id, value FROM ratings WHERE recipe_id IN ({marks}) ORDER BY id",
                batch,
            ):
                ratings[r["recipe_id"]].append(Rating(user=r["user_id"], value=r["value"]))
            for c in conn.execute(
                f"SELECT * FROM comments WHERE recipe_id IN ({marks}) ORDER BY id",
                batch,
            ):
                comments[c["recipe_id"]].append(self._comment_from_row(c))

        recipes = []
        for row in rows:
            recipes.append(Recipe(
                id=row["id"],
                name=row["name"],
                description=row["description"],
                image_url=row["image_url"],
                ingredients=json.loads(row["ingredients"] or "[]"),
                steps=row["steps"],
                cooking_time=row["cooking_time"],
                created_by=row["created_by"],
                ratings=ratings[row["id"]],
                comments=comments[row["id"]],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            ))
        return recipes

    @staticmethod
    def _comment_from_row(row: sqlite3.Row) -> Comment:
        return Comment(
            user=row["user_id"],
            user_name=row["user_name"],
            text=row["text"],
            created_at=row["created_at"],
        )

    def _require_recipe(self, conn: sqlite3.Connection, recipe_id: int):
        if conn.execute("SELECT 1 FROM recipes WHERE id = ?", (recipe_id,)).fetchone() is None:
            raise NotFound("Recipe not found")

    def create_recipe(
        self,
        owner_id: int,
        name: str,
        ingredients: List[str],
        description: Optional[str] = None,
        steps: Optional[str] = None,
        cooking_time: Optional[float] = None,
        image_url: Optional[str] = None,
    ) -> Recipe:
        image_url = (image_url or "").strip() or PLACEHOLDER_IMAGE_URL
        with self.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO recipes (name, description, image_url, ingredients, steps, cooking_time, created_by)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (name, description, image_url, json.dumps(ingredients), steps, cooking_time, owner_id)
            )
            recipe_id = cursor.lastrowid
            row = conn.execute("SELECT * FROM recipes WHERE id = ?", (recipe_id,)).fetchone()
            return self._hydrate(conn, [row])[0]

    def get_recipe(self, recipe_id: int) -> Recipe:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM recipes WHERE id = ?", (recipe_id,)).fetchone()
            if not row:
                raise NotFound("Recipe not found")
            return self._hydrate(conn, [row])[0]

    def list_user_recipes(self, owner_id: int) -> List[Recipe]:
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM recipes WHERE created_by = ? ORDER BY created_at DESC, id DESC",
                (owner_id,)
            ).fetchall()
            return self._hydrate(conn, rows)

    def search_recipes(self, ingredients: List[str], match_mode: str = "any") -> List[Recipe]:
        """
        'all' keeps recipes containing every queried ingredient, anything else
        keeps recipes sharing at least one.
        """
        marks = ",".join("?" * len(ingredients))
        if match_mode == "all":
            query = f"""
                SELECT r.* FROM recipes r
                WHERE (SELECT COUNT(DISTINCT j.value) FROM json_each(r.ingredients) j
                       WHERE j.value IN ({marks})) = ?
                ORDER BY r.created_at DESC, r.id DESC
            """
            params = [*ingredients, len(set(ingredients))]
        else:
            query = f"""
                SELECT r.* FROM recipes r
                WHERE EXISTS (SELECT 1 FROM json_each(r.ingredients) j WHERE j.value IN ({marks}))
                ORDER BY r.created_at DESC, r.id DESC
            """
            params = list(ingredients)
        with self.get_connection() as conn:
            return self._hydrate(conn, conn.execute(query, params).fetchall())

    # --- Ratings ---
    @staticmethod
    def _rating_aggregate(conn: sqlite3.Connection, recipe_id: int) -> tuple:
        row = conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(value), 0) FROM ratings WHERE recipe_id = ?",
            (recipe_id,)
        ).fetchone()
        count = row[0] or 0
        total = row[1] or 0
        average = (total / count) if count > 0 else 0
        return average, count

    def upsert_rating(self, recipe_id: int, user_id: int, value: int) -> RatingSummary:
        if value < 1 or value > 5:
            raise ValidationError("Rating must be 1-5")
        with self.get_connection() as conn:
            # single statement: insert, or replace this user's value in place
            cursor = conn.execute(
                f"""
                INSERT INTO ratings (recipe_id, user_id, value)
                SELECT ?, ?, ? WHERE EXISTS (SELECT 1 FROM recipes WHERE id = ?)
                ON CONFLICT(recipe_id, user_id)
                DO UPDATE SET value = excluded.value, updated_at = {NOW_SQL}
                """,
                (recipe_id, user_id, value, recipe_id)
            )
            if cursor.rowcount == 0:
                raise NotFound("Recipe not found")
            conn.execute(f"UPDATE recipes SET updated_at = {NOW_SQL} WHERE id = ?", (recipe_id,))

        with self.get_connection() as conn:
            average, count = self._rating_aggregate(conn, recipe_id)
        return RatingSummary(my_rating=value, avg_rating=average, rating_count=count)

    def get_feedback(self, recipe_id: int) -> Feedback:
        with self.get_connection() as conn:
            self._require_recipe(conn, recipe_id)
            average, count = self._rating_aggregate(conn, recipe_id)
            rows = conn.execute(
                "SELECT * FROM comments WHERE recipe_id = ? ORDER BY id",
                (recipe_id,)
            ).fetchall()
            comments = [self._comment_from_row(row) for row in rows]
        return Feedback(avg_rating=average, rating_count=count, comments=comments)

    # --- Comments ---
    def create_comment(self, recipe_id: int, user_id: int, user_name: str, text: str) -> Comment:
        """Appends a comment. `text` must already be escaped; `user_name` is stored as a snapshot."""
        with self.get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO comments (recipe_id, user_id, user_name, text)
                SELECT ?, ?, ?, ? WHERE EXISTS (SELECT 1 FROM recipes WHERE id = ?)
                """,
                (recipe_id, user_id, user_name, text, recipe_id)
            )
            if cursor.rowcount == 0:
                raise NotFound("Recipe not found")
            comment_id = cursor.lastrowid
            conn.execute(f"UPDATE recipes SET updated_at = {NOW_SQL} WHERE id = ?", (recipe_id,))
            row = conn.execute("SELECT * FROM comments WHERE id = ?", (comment_id,)).fetchone()
            return self._comment_from_row(row)

    # --- Saved recipes ---
    def find_saved_id(self, user_id: int, recipe_id: int) -> Optional[int]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT id FROM saved_recipes WHERE user_id = ? AND recipe_id = ?",
                (user_id, recipe_id)
            ).fetchone()
            return row[0] if row else None

    def save_recipe(self, user_id: int, recipe_id: int) -> int:
        """Bookmarks a recipe; saving twice returns the existing bookmark id."""
        with self.get_connection() as conn:
            self._require_recipe(conn, recipe_id)
            conn.execute(
                """
                INSERT INTO saved_recipes (user_id, recipe_id) VALUES (?, ?)
                ON CONFLICT(user_id, recipe_id) DO NOTHING
                """,
                (user_id, recipe_id)
            )
            row = conn.execute(
                "SELECT id FROM saved_recipes WHERE user_id = ? AND recipe_id = ?",
                (user_id, recipe_id)
            ).fetchone()
            return row[0]

    def toggle_saved(self, user_id: int, recipe_id: int) -> ToggleResult:
        with self.get_connection() as conn:
            self._require_recipe(conn, recipe_id)

        existing = self.find_saved_id(user_id, recipe_id)
        if existing is not None:
            with self.get_connection() as conn:
                conn.execute("DELETE FROM saved_recipes WHERE id = ? AND user_id = ?", (existing, user_id))
            return ToggleResult(saved=False)

        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO saved_recipes (user_id, recipe_id) VALUES (?, ?)",
                    (user_id, recipe_id)
                )
                return ToggleResult(saved=True, saved_id=cursor.lastrowid)
        except sqlite3.IntegrityError:
            # a concurrent request saved the same pair first; the desired state holds
            logger.info(f"Concurrent save for user {user_id} recipe {recipe_id}; treating as saved")
            return ToggleResult(saved=True, saved_id=self.find_saved_id(user_id, recipe_id))

    def list_saved_recipes(self, user_id: int) -> List[Recipe]:
        # inner join drops bookmarks whose recipe no longer exists
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT r.* FROM saved_recipes s
                JOIN recipes r ON r.id = s.recipe_id
                WHERE s.user_id = ?
                ORDER BY s.created_at DESC, s.id DESC
                """,
                (user_id,)
            ).fetchall()
            return self._hydrate(conn, rows)

    def delete_saved(self, user_id: int, saved_id: int):
        with self.get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM saved_recipes WHERE id = ? AND user_id = ?",
                (saved_id, user_id)
            )
            if cursor.rowcount == 0:
                raise NotFound("Saved recipe not found")


def get_db(request: Request) -> DatabaseManager:
    return request.app.state.db
