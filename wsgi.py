"""
WSGI entry point for DMARC Desk.

WSGI hosts import this module and look for the ``app`` variable.  The
development server can also be started by running this file directly.

=============================================================================
DEPLOYMENT
=============================================================================

1. Install the project into a virtual environment:

     pip install .

2. Set the environment variables (at least SECRET_KEY and DATABASE_URL).
   For SQLite always use an absolute path:

     DATABASE_URL=sqlite:////srv/dmarcdesk/instance/dmarcdesk.db

   Outgoing summary mail is configured with the MAILER_* variables and
   the incoming reports mailbox with the MAILBOX_* variables.

3. Create the tables and the first administrator:

     python init_db.py
     python create_admin.py --name admin --password <your-secure-password>

4. Point the WSGI server at ``wsgi:app``, for example:

     gunicorn wsgi:app

5. Add the scheduled tasks (cron):

     # Every 15 minutes: import reports from the mailbox
     */15 * * * *  python /srv/dmarcdesk/fetch_reports.py --source mailbox
     # Every Monday: mail last week's summary of all domains
     0 6 * * 1     python /srv/dmarcdesk/summary_report.py domain=all period=lastweek

=============================================================================
LOCAL DEVELOPMENT
=============================================================================

  export SECRET_KEY=dev-only-not-for-production
  python wsgi.py

The app will be available at http://127.0.0.1:5000/

For testing:

  pip install -e ".[test]"
  pytest tests/ -v

=============================================================================
"""

from __future__ import annotations

from dmarcdesk import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
