from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c1f0e7b9a21'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
        sa.Column('registration_number', sa.String(length=50), nullable=True),
        sa.Column('college', sa.String(length=120), nullable=True),
        sa.Column('branch', sa.String(length=120), nullable=True),
        sa.Column('section', sa.String(length=10), nullable=True),
        sa.Column('year', sa.String(length=2), nullable=True),
        sa.Column('semester', sa.String(length=2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('date_created', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.current_timestamp()),
        sa.UniqueConstraint('registration_number'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_college', 'users', ['college'])
    op.create_index('ix_users_branch', 'users', ['branch'])

    op.create_table(
        'assessments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('college', sa.String(length=120), nullable=False),
        sa.Column('branch', sa.String(length=120), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('kind', sa.String(length=10), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.current_timestamp()),
    )
    op.create_index('ix_assessments_college', 'assessments', ['college'])
    op.create_index('ix_assessments_branch', 'assessments', ['branch'])
    op.create_index('ix_assessments_kind', 'assessments', ['kind'])
    op.create_index('ix_assessments_start_date', 'assessments', ['start_date'])
    op.create_index('ix_assessments_end_date', 'assessments', ['end_date'])

    op.create_table(
        'quiz_questions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('assessment_id', sa.Integer(), sa.ForeignKey('assessments.id'), nullable=False),
        sa.Column('question_number', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('options', sa.JSON(), nullable=False),
        sa.Column('correct_option', sa.String(length=1), nullable=False),
        sa.Column('marks', sa.Float(), nullable=False, server_default='1'),
    )
    op.create_index('ix_quiz_questions_assessment_id', 'quiz_questions', ['assessment_id'])

    op.create_table(
        'coding_problems',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('assessment_id', sa.Integer(), sa.ForeignKey('assessments.id'), nullable=False),
        sa.Column('problem_number', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('input_format', sa.Text(), nullable=True),
        sa.Column('output_format', sa.Text(), nullable=True),
        sa.Column('constraints', sa.Text(), nullable=True),
        sa.Column('difficulty', sa.String(length=10), nullable=False, server_default='Medium'),
        sa.Column('marks', sa.Float(), nullable=False, server_default='10'),
        sa.Column('time_limit_seconds', sa.Float(), nullable=False, server_default='2'),
        sa.Column('memory_limit_kb', sa.Integer(), nullable=False, server_default='256000'),
        sa.Column('test_cases', sa.JSON(), nullable=False),
    )
    op.create_index('ix_coding_problems_assessment_id', 'coding_problems', ['assessment_id'])

    op.create_table(
        'attempts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('assessment_id', sa.Integer(), sa.ForeignKey('assessments.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='in_progress'),
        sa.Column('submit_reason', sa.String(length=20), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deadline_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tab_switches', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('fullscreen_exits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('total_marks', sa.Float(), nullable=False, server_default='0'),
        sa.Column('percentage', sa.Float(), nullable=False, server_default='0'),
        sa.UniqueConstraint('assessment_id', 'student_id', name='uq_attempt_assessment_student'),
    )
    op.create_index('ix_attempts_assessment_id', 'attempts', ['assessment_id'])
    op.create_index('ix_attempts_student_id', 'attempts', ['student_id'])
    op.create_index('ix_attempts_status', 'attempts', ['status'])
    op.create_index('ix_attempts_assessment_status', 'attempts', ['assessment_id', 'status'])

    op.create_table(
        'answer_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('attempt_id', sa.Integer(), sa.ForeignKey('attempts.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('quiz_questions.id'), nullable=False),
        sa.Column('selected_option', sa.String(length=1), nullable=True),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_answer_attempt_question'),
    )
    op.create_index('ix_answer_records_attempt_id', 'answer_records', ['attempt_id'])

    op.create_table(
        'code_submissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('attempt_id', sa.Integer(), sa.ForeignKey('attempts.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('problem_id', sa.Integer(), sa.ForeignKey('coding_problems.id'), nullable=False),
        sa.Column('source_code', sa.Text(), nullable=False),
        sa.Column('language', sa.String(length=20), nullable=False),
        sa.Column('language_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('test_results', sa.JSON(), nullable=True),
        sa.Column('passed_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('execution_time', sa.Float(), nullable=False, server_default='0'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_code_submissions_attempt_id', 'code_submissions', ['attempt_id'])
    op.create_index('ix_code_submissions_student_id', 'code_submissions', ['student_id'])
    op.create_index('ix_code_submissions_problem_id', 'code_submissions', ['problem_id'])
    op.create_index('ix_code_submissions_status', 'code_submissions', ['status'])
    op.create_index('ix_code_submissions_attempt_problem', 'code_submissions',
                    ['attempt_id', 'problem_id', 'submitted_at'])


def downgrade():
    op.drop_table('code_submissions')
    op.drop_table('answer_records')
    op.drop_table('attempts')
    op.drop_table('coding_problems')
    op.drop_table('quiz_questions')
    op.drop_table('assessments')
    op.drop_table('users')
