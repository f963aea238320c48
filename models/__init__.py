from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.users import User

from models.assessments import Assessment
from models.quiz_questions import QuizQuestion
from models.coding_problems import CodingProblem

from models.attempts import Attempt
from models.answer_records import AnswerRecord
from models.code_submissions import CodeSubmission
