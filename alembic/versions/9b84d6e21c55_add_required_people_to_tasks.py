"""add_required_people_to_tasks

Revision ID: 9b84d6e21c55
Revises: 3f1c2a9e0b7d
Create Date: 2025-10-14 18:40:07.502911

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9b84d6e21c55'
down_revision: Union[str, Sequence[str], None] = '3f1c2a9e0b7d'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add required_people as a nullable column.

    Existing rows keep NULL; readers treat NULL as one person.
    """
    op.add_column('tasks', sa.Column('required_people', sa.Integer(), nullable=True))


def downgrade() -> None:
    """Remove required_people."""
    with op.batch_alter_table('tasks') as batch_op:
        batch_op.drop_column('required_people')
