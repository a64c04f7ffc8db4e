# run.py
import os

from civicfix import create_app
from civicfix.models import db

app = create_app()


@app.shell_context_processor
def make_shell_context():
    from civicfix.models import User, Issue, Worker, Payment, Review
    return {'db': db, 'User': User, 'Issue': Issue, 'Worker': Worker, 'Payment': Payment, 'Review': Review}


if __name__ == '__main__':
    with app.app_context():
        db.create_all()
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
