"""Initial schema — all tables, indexes, and constraints for civicdesk.

Revision ID: 0001
Revises:     (none)
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op


def upgrade() -> None:
    # ---------------------------------------------------------------------- #
    # Enable pgcrypto for gen_random_uuid()                                   #
    # ---------------------------------------------------------------------- #
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # ---------------------------------------------------------------------- #
    # ENUM-like CHECK constraints are expressed as VARCHAR + CHECK            #
    # so that values can be added without a schema migration.                  #
    # ---------------------------------------------------------------------- #

    # ------------------------------------------------------------------ #
    # departments  (routing table)                                         #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE departments (
            id               UUID          NOT NULL DEFAULT gen_random_uuid(),
            name             VARCHAR(255)  NOT NULL,
            name_local       VARCHAR(255)  NOT NULL,
            head_id          UUID,
            description      TEXT,
            phone            VARCHAR(20),
            email            VARCHAR(255),
            status           VARCHAR(20)   NOT NULL DEFAULT 'active',
            routing_priority INT           NOT NULL DEFAULT 100,
            categories       JSONB         NOT NULL DEFAULT '[]'::jsonb,
            created_at       TIMESTAMP     NOT NULL DEFAULT NOW(),
            updated_at       TIMESTAMP     NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_departments PRIMARY KEY (id),
            CONSTRAINT uq_departments_name UNIQUE (name),
            CONSTRAINT chk_departments_status CHECK (status IN ('active', 'inactive'))
        )
    """)

    # ------------------------------------------------------------------ #
    # users                                                                #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE users (
            id            UUID          NOT NULL DEFAULT gen_random_uuid(),
            full_name     VARCHAR(200)  NOT NULL,
            email         VARCHAR(200),
            phone_number  VARCHAR(20),
            role          VARCHAR(30)   NOT NULL DEFAULT 'citizen',
            department_id UUID,
            is_active     BOOLEAN       NOT NULL DEFAULT TRUE,
            created_at    TIMESTAMP     NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_users PRIMARY KEY (id),
            CONSTRAINT uq_users_email UNIQUE (email),
            CONSTRAINT fk_users_department FOREIGN KEY (department_id)
                REFERENCES departments (id) ON DELETE SET NULL,
            CONSTRAINT chk_users_role CHECK (
                role IN ('citizen', 'field-worker', 'department-head', 'district-magistrate')
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # complaints                                                           #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE complaints (
            id                      UUID              NOT NULL DEFAULT gen_random_uuid(),
            reporter_id             UUID              NOT NULL,
            categories              JSONB             NOT NULL,
            note                    TEXT,
            latitude                DOUBLE PRECISION  NOT NULL,
            longitude               DOUBLE PRECISION  NOT NULL,
            ward                    VARCHAR(100),
            evidence_ref            VARCHAR(500)      NOT NULL,
            completion_evidence_ref VARCHAR(500),
            status                  VARCHAR(20)       NOT NULL DEFAULT 'submitted',
            priority                VARCHAR(10)       NOT NULL DEFAULT 'medium',
            assigned_worker_id      UUID,
            assigned_department_id  UUID,
            estimated_completion    DATE,
            assigned_at             TIMESTAMP,
            completed_at            TIMESTAMP,
            completion_notes        TEXT,
            citizen_rating          SMALLINT,
            citizen_feedback        TEXT,
            created_at              TIMESTAMP         NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMP         NOT NULL DEFAULT NOW(),
            version                 INT               NOT NULL DEFAULT 1,
            CONSTRAINT pk_complaints PRIMARY KEY (id),
            CONSTRAINT fk_complaints_reporter FOREIGN KEY (reporter_id)
                REFERENCES users (id),
            CONSTRAINT fk_complaints_worker FOREIGN KEY (assigned_worker_id)
                REFERENCES users (id),
            CONSTRAINT fk_complaints_department FOREIGN KEY (assigned_department_id)
                REFERENCES departments (id) ON DELETE SET NULL,
            CONSTRAINT chk_complaints_status CHECK (
                status IN ('submitted', 'assigned', 'completed')
            ),
            CONSTRAINT chk_complaints_priority CHECK (
                priority IN ('low', 'medium', 'high')
            ),
            CONSTRAINT chk_complaints_latitude CHECK (latitude BETWEEN -90 AND 90),
            CONSTRAINT chk_complaints_longitude CHECK (longitude BETWEEN -180 AND 180),
            CONSTRAINT chk_complaints_categories CHECK (
                jsonb_typeof(categories) = 'array' AND jsonb_array_length(categories) > 0
            ),
            CONSTRAINT chk_complaints_rating CHECK (
                citizen_rating IS NULL OR citizen_rating BETWEEN 1 AND 5
            ),
            -- completed ⇒ completion evidence present
            CONSTRAINT chk_complaints_completion_evidence CHECK (
                status <> 'completed' OR completion_evidence_ref IS NOT NULL
            ),
            -- a worker is attached only while assigned or completed
            CONSTRAINT chk_complaints_worker_status CHECK (
                assigned_worker_id IS NULL OR status IN ('assigned', 'completed')
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # complaint_status_history  (append-only audit trail)                  #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE complaint_status_history (
            id           BIGSERIAL    NOT NULL,
            complaint_id UUID         NOT NULL,
            status       VARCHAR(20)  NOT NULL,
            actor_id     UUID,
            notes        TEXT,
            created_at   TIMESTAMP    NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_complaint_status_history PRIMARY KEY (id),
            CONSTRAINT fk_status_history_complaint FOREIGN KEY (complaint_id)
                REFERENCES complaints (id) ON DELETE CASCADE,
            CONSTRAINT fk_status_history_actor FOREIGN KEY (actor_id)
                REFERENCES users (id) ON DELETE SET NULL,
            CONSTRAINT chk_status_history_status CHECK (
                status IN ('submitted', 'assigned', 'completed')
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # worker_profiles  (assignment ledger counters)                        #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE worker_profiles (
            user_id              UUID              NOT NULL,
            specializations      JSONB             NOT NULL DEFAULT '[]'::jsonb,
            efficiency_rating    DOUBLE PRECISION  NOT NULL DEFAULT 0,
            total_assigned       INT               NOT NULL DEFAULT 0,
            total_completed      INT               NOT NULL DEFAULT 0,
            avg_completion_hours DOUBLE PRECISION,
            current_status       VARCHAR(20)       NOT NULL DEFAULT 'available',
            location_lat         DOUBLE PRECISION,
            location_lng         DOUBLE PRECISION,
            last_active          TIMESTAMP,
            created_at           TIMESTAMP         NOT NULL DEFAULT NOW(),
            updated_at           TIMESTAMP         NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_worker_profiles PRIMARY KEY (user_id),
            CONSTRAINT fk_worker_profiles_user FOREIGN KEY (user_id)
                REFERENCES users (id) ON DELETE CASCADE,
            CONSTRAINT chk_worker_profiles_status CHECK (
                current_status IN ('available', 'busy', 'offline')
            ),
            CONSTRAINT chk_worker_profiles_efficiency CHECK (
                efficiency_rating BETWEEN 0 AND 5
            ),
            CONSTRAINT chk_worker_profiles_counters CHECK (
                total_assigned >= 0 AND total_completed >= 0
            )
        )
    """)

    # ------------------------------------------------------------------ #
    # notifications                                                        #
    # ------------------------------------------------------------------ #
    op.execute("""
        CREATE TABLE notifications (
            id           UUID        NOT NULL DEFAULT gen_random_uuid(),
            user_id      UUID        NOT NULL,
            complaint_id UUID,
            type         VARCHAR(50) NOT NULL,
            message      TEXT,
            is_read      BOOLEAN     NOT NULL DEFAULT FALSE,
            created_at   TIMESTAMP   NOT NULL DEFAULT NOW(),
            CONSTRAINT pk_notifications PRIMARY KEY (id),
            CONSTRAINT fk_notifications_user FOREIGN KEY (user_id)
                REFERENCES users (id) ON DELETE CASCADE,
            CONSTRAINT fk_notifications_complaint FOREIGN KEY (complaint_id)
                REFERENCES complaints (id) ON DELETE SET NULL
        )
    """)

    # ------------------------------------------------------------------ #
    # Indexes                                                              #
    # ------------------------------------------------------------------ #

    # complaints — scope pre-filters and listing order
    op.execute("CREATE INDEX idx_complaints_reporter ON complaints (reporter_id)")
    op.execute("CREATE INDEX idx_complaints_worker ON complaints (assigned_worker_id)")
    op.execute("CREATE INDEX idx_complaints_department ON complaints (assigned_department_id)")
    op.execute("CREATE INDEX idx_complaints_status ON complaints (status)")
    op.execute("CREATE INDEX idx_complaints_created_at ON complaints (created_at)")

    # complaint_status_history
    op.execute("""
        CREATE INDEX idx_status_history_complaint
        ON complaint_status_history (complaint_id, created_at, id)
    """)

    # users — worker counts per department
    op.execute("CREATE INDEX idx_users_role_department ON users (role, department_id)")

    # notifications — unread lookups
    op.execute("CREATE INDEX idx_notifications_user_read ON notifications (user_id, is_read)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS worker_profiles CASCADE")
    op.execute("DROP TABLE IF EXISTS complaint_status_history CASCADE")
    op.execute("DROP TABLE IF EXISTS complaints CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
    op.execute("DROP TABLE IF EXISTS departments CASCADE")
