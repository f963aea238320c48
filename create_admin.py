import argparse
import getpass
from app import app, db
from models import User

parser = argparse.ArgumentParser(description="Create or reset a GradeUpNow admin account")
parser.add_argument("email")
parser.add_argument("--name", default="Administrator")
parser.add_argument("--role", choices=("admin", "super_admin"), default="admin")
parser.add_argument("--college")
parser.add_argument("--branch")

if __name__ == "__main__":
    args = parser.parse_args()
    password = getpass.getpass("Password: ")

    with app.app_context():
        db.create_all()
        user = User.query.filter_by(email=args.email.lower()).first()
        if user:
            user.set_password(password)
            db.session.commit()
            print("Password updated successfully!")
        else:
            user = User(
                email=args.email.lower(),
                name=args.name,
                role=args.role,
                college=args.college,
                branch=args.branch,
            )
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            print(f"{args.role} {user.email} created.")
