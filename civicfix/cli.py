# civicfix/cli.py
import click
from werkzeug.security import generate_password_hash

from .assignment import auto_assign
from .errors import ApiError
from .models import User, Worker, Issue, Payment
from .repositories import Repositories
from .upi import validate_upi_id
from .workflow import pending_payments


def register_commands(app):
    repos = Repositories()

    @app.cli.command("create-admin")
    @click.argument("name")
    @click.argument("email")
    @click.password_option()
    def create_admin(name, email, password):
        """Creates an admin account. Admins cannot self-register."""
        email = email.strip().lower()
        with repos.transaction():
            if repos.users.get_by_email(email):
                print(f"Error: A user with email {email} already exists.")
                return
            repos.users.add(User(
                name=name,
                email=email,
                password_hash=generate_password_hash(password),
                role='admin',
            ))
        print(f"Successfully created admin: '{name}' <{email}>")

    @app.cli.command("add-worker")
    @click.argument("email")
    @click.option('--tags', default='', help='Comma separated specializations, e.g. roads,lighting.')
    @click.option('--upi-id', default=None, help='UPI id used for payouts, e.g. 9876543210@paytm.')
    @click.option('--location', default=None)
    def add_worker(email, tags, upi_id, location):
        """Creates or updates the worker profile of a user with the worker role."""
        user = repos.users.get_by_email(email)
        if not user:
            print(f"Error: User with email {email} not found.")
            return
        if user.role != 'worker':
            print(f"Error: User {email} has role '{user.role}', not 'worker'.")
            return
        if upi_id and not validate_upi_id(upi_id):
            print(f"Error: '{upi_id}' is not a valid UPI id.")
            return

        tag_list = [t.strip() for t in tags.split(',') if t.strip()]
        with repos.transaction():
            worker = repos.workers.get_by_user(user.id)
            if not worker:
                worker = repos.workers.add(Worker(user_id=user.id, tags=[]))
            if tag_list:
                worker.tags = tag_list
            if upi_id:
                worker.upi_id = upi_id
            if location:
                worker.location = location
        print(f"Worker profile {worker.id} for {user.name}: tags={worker.tags} upi={worker.upi_id or 'N/A'}")

    @app.cli.command("auto-assign")
    @click.argument("issue_id", type=int)
    def auto_assign_command(issue_id):
        try:
            issue, worker = auto_assign(repos, issue_id)
        except ApiError as e:
            print(f"Error: {e.message}")
            return
        print(f"Success! Issue #{issue.id} assigned to {worker.name} (worker {worker.id}, {worker.total_jobs} jobs).")

    @app.cli.command("list-issues")
    @click.option('--status', default=None, help='Filter issues by status (e.g., pending, completed).')
    def list_issues(status):
        query = Issue.query
        if status:
            query = query.filter_by(status=status)
        issues = query.order_by(Issue.id.desc()).all()
        if not issues:
            print("No issues found" + (f" with status '{status}'." if status else "."))
            return
        print("--- Issues" + (f" with status: {status}" if status else "") + " ---")
        for issue in issues:
            assignee = issue.assignee.name if issue.assignee else "N/A"
            print(f"ID: {issue.id} | Status: {issue.status} | Category: {issue.category} | Worker: {assignee} | Title: {issue.title[:30]}")
        print("--------------------")

    @app.cli.command("pending-payments")
    def pending_payments_command():
        total, entries = pending_payments(repos)
        if not entries:
            print("There are no pending payments.")
            return
        print("--- Pending Payments ---")
        for payment, links in entries:
            link = links['generic'] if links else 'no UPI id on file'
            print(f"Payment {payment.id} | Issue #{payment.issue_id} | {payment.worker.name} | {payment.currency} {payment.amount:.2f} | {link}")
        print(f"Total pending: {total:.2f}")

    @app.cli.command("stats")
    def stats():
        counts = repos.issues.count_by_status()
        print("--- CivicFix System Statistics ---")
        print(f"Citizens: {repos.users.count('citizen')}")
        print(f"Workers:  {Worker.query.count()}")
        print(f"Admins:   {repos.users.count('admin')}")
        for status, count in sorted(counts.items()):
            print(f"Issues {status}: {count}")
        print(f"Pending payments: {Payment.query.filter_by(status='pending').count()}")
        print("----------------------------------")
