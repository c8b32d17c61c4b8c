#!/usr/bin/env python3
"""
Database management script for deployment.
Run this during the build/deployment pipeline to bring the schema up to date.
"""
import os
import sys

# Add current directory to path so we can import league
sys.path.append(os.getcwd())

from flask_migrate import upgrade
from sqlalchemy.exc import SQLAlchemyError

from league.app import create_app
from league.models import db


def deploy():
    """Run deployment tasks."""
    print("Starting database migration...")
    app = create_app()
    with app.app_context():
        try:
            if os.path.isdir(os.path.join(os.getcwd(), 'migrations')):
                # Run Alembic upgrade to apply migrations
                upgrade()
                print("✓ Database migrations applied.")
            else:
                db.create_all()
                print("✓ No migrations directory, tables created from models.")
        except SQLAlchemyError as e:
            print(f"Error applying migrations: {e}")
            sys.exit(1)


if __name__ == '__main__':
    deploy()
