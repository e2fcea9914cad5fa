"""achievements and OLBI burnout questionnaire

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    achievement_category_enum = sa.Enum(
        "bronze", "silver", "gold", "diamond", name="achievement_category_enum"
    )
    achievement_category_enum.create(op.get_bind(), checkfirst=True)

    burnout_dimension_enum = sa.Enum(
        "exhaustion", "disengagement", name="burnout_dimension_enum"
    )
    burnout_dimension_enum.create(op.get_bind(), checkfirst=True)

    burnout_test_type_enum = sa.Enum("initial", "final", name="burnout_test_type_enum")
    burnout_test_type_enum.create(op.get_bind(), checkfirst=True)

    burnout_level_enum = sa.Enum("low", "medium", "high", name="burnout_level_enum")
    burnout_level_enum.create(op.get_bind(), checkfirst=True)

    # --- achievements ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.Enum(
            "bronze", "silver", "gold", "diamond",
            name="achievement_category_enum", create_type=False,
        ), nullable=False),
        sa.Column("image", sa.String(256), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_achievements_id", "achievements", ["id"])

    # --- patient_achievements ---
    op.create_table(
        "patient_achievements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("achievement_id", sa.Integer(), sa.ForeignKey("achievements.id"), nullable=False),
        sa.Column("granted_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("patient_id", "achievement_id", name="uq_patient_achievement"),
    )
    op.create_index("ix_patient_achievements_id", "patient_achievements", ["id"])
    op.create_index("ix_patient_achievements_patient_id", "patient_achievements", ["patient_id"])
    op.create_index("ix_patient_achievements_achievement_id", "patient_achievements", ["achievement_id"])

    # --- burnout_questions ---
    op.create_table(
        "burnout_questions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("dimension", sa.Enum(
            "exhaustion", "disengagement",
            name="burnout_dimension_enum", create_type=False,
        ), nullable=False),
        sa.Column("is_reversed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_burnout_questions_id", "burnout_questions", ["id"])

    # --- burnout_test_results ---
    op.create_table(
        "burnout_test_results",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("test_type", sa.Enum(
            "initial", "final", name="burnout_test_type_enum", create_type=False,
        ), nullable=False),
        sa.Column("exhaustion_avg", sa.Numeric(4, 2), nullable=False),
        sa.Column("disengagement_avg", sa.Numeric(4, 2), nullable=False),
        sa.Column("overall_score", sa.Numeric(4, 2), nullable=False),
        sa.Column("level", sa.Enum(
            "low", "medium", "high", name="burnout_level_enum", create_type=False,
        ), nullable=False),
        sa.Column("taken_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("patient_id", "test_type", name="uq_burnout_result_patient_type"),
    )
    op.create_index("ix_burnout_test_results_id", "burnout_test_results", ["id"])
    op.create_index("ix_burnout_test_results_patient_id", "burnout_test_results", ["patient_id"])

    # --- burnout_responses ---
    op.create_table(
        "burnout_responses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("test_result_id", sa.Integer(), sa.ForeignKey("burnout_test_results.id"), nullable=False),
        sa.Column("question_id", sa.Integer(), sa.ForeignKey("burnout_questions.id"), nullable=False),
        sa.Column("raw_value", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("test_result_id", "question_id", name="uq_burnout_response_question"),
    )
    op.create_index("ix_burnout_responses_id", "burnout_responses", ["id"])
    op.create_index("ix_burnout_responses_test_result_id", "burnout_responses", ["test_result_id"])

    # --- seed achievement catalog ---
    op.execute("""
        INSERT INTO achievements (code, name, description, category, image)
        VALUES
          ('first_step',      'Primer Paso',          'Completa tu primera actividad.',          'bronze',  'first_step.png'),
          ('streak_3',        'Racha de 3 días',      'Completa actividades 3 días seguidos.',   'silver',  'streak_3.png'),
          ('first_module',    'Primer Módulo',        'Completa tu primer módulo.',              'silver',  'first_module.png'),
          ('consistent',      'Constante',            'Completa 10 actividades.',                'silver',  'consistent.png'),
          ('streak_7',        'Racha de 7 días',      'Completa actividades 7 días seguidos.',   'gold',    'streak_7.png'),
          ('halfway',         'Mitad del Camino',     'Llega al 50% del programa.',              'gold',    'halfway.png'),
          ('burnout_warrior', 'Guerrero del Burnout', 'Completa todo el programa.',              'diamond', 'burnout_warrior.png'),
          ('streak_14',       'Racha Legendaria',     'Completa actividades 14 días seguidos.',  'diamond', 'streak_14.png')
    """)

    # --- seed OLBI items (8 per dimension, 4 reversed in each) ---
    op.execute("""
        INSERT INTO burnout_questions (text, dimension, is_reversed, position)
        VALUES
          ('Siempre encuentro aspectos nuevos e interesantes en mi trabajo.',                         'disengagement', true,   1),
          ('Hay días en que me siento cansado/a antes de llegar al trabajo.',                         'exhaustion',    false,  2),
          ('Cada vez con más frecuencia hablo de mi trabajo de forma negativa.',                     'disengagement', false,  3),
          ('Después del trabajo necesito más tiempo que antes para relajarme y sentirme mejor.',     'exhaustion',    false,  4),
          ('Soporto muy bien la presión de mi trabajo.',                                              'exhaustion',    true,   5),
          ('Últimamente tiendo a pensar menos en el trabajo y a hacerlo casi mecánicamente.',        'disengagement', false,  6),
          ('Encuentro que mi trabajo es un desafío positivo.',                                        'disengagement', true,   7),
          ('Durante mi trabajo a menudo me siento emocionalmente agotado/a.',                        'exhaustion',    false,  8),
          ('Con el tiempo uno puede desconectarse de este tipo de trabajo.',                          'disengagement', false,  9),
          ('Después de trabajar tengo suficiente energía para mis actividades de ocio.',             'exhaustion',    true,  10),
          ('A veces siento rechazo hacia mis tareas laborales.',                                      'disengagement', false, 11),
          ('Después de mi trabajo suelo sentirme desgastado/a y fatigado/a.',                         'exhaustion',    false, 12),
          ('Este es el único tipo de trabajo que me imagino haciendo.',                               'disengagement', true,  13),
          ('Normalmente puedo manejar bien la cantidad de trabajo que tengo.',                        'exhaustion',    true,  14),
          ('Me siento cada vez más comprometido/a con mi trabajo.',                                   'disengagement', true,  15),
          ('Cuando trabajo normalmente me siento con energía.',                                       'exhaustion',    true,  16)
    """)


def downgrade() -> None:
    op.drop_table("burnout_responses")
    op.drop_table("burnout_test_results")
    op.drop_table("burnout_questions")
    op.drop_table("patient_achievements")
    op.drop_table("achievements")

    op.execute("DROP TYPE IF EXISTS burnout_level_enum")
    op.execute("DROP TYPE IF EXISTS burnout_test_type_enum")
    op.execute("DROP TYPE IF EXISTS burnout_dimension_enum")
    op.execute("DROP TYPE IF EXISTS achievement_category_enum")
