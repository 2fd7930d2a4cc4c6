"""
Mail bodies for marketplace emails; delivery goes through `tasks.send_email_task`.
"""
from django.conf import settings


def build_otp_email(verification_code, expiry_minutes=None):
    """
    Subject, plain text and HTML bodies for the password reset OTP mail
    """
    expiry_minutes = expiry_minutes or getattr(settings, 'PASSWORD_RESET_TOKEN_EXPIRY', 10)
    subject = 'Password Reset OTP'

    html_message = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <title>Password Reset OTP</title>
        <style>
            body {{
                font-family: Arial, sans-serif;
                line-height: 1.6;
                color: #333;
                max-width: 600px;
                margin: 0 auto;
                padding: 20px;
            }}
            .code-container {{
                background-color: #0d9488;
                color: white;
                padding: 20px;
                text-align: center;
                border-radius: 8px;
                margin: 20px 0;
            }}
            .verification-code {{
                font-size: 32px;
                font-weight: bold;
                letter-spacing: 8px;
            }}
        </style>
    </head>
    <body>
        <h2>Password Reset OTP</h2>
        <p>You requested a password reset for your LocalFinds account.</p>
        <div class="code-container">
            <p>Your OTP is:</p>
            <div class="verification-code">{verification_code}</div>
            <p><strong>This OTP will expire in {expiry_minutes} minutes.</strong></p>
        </div>
        <p>If you didn't request this, please ignore this email.</p>
    </body>
    </html>
    """

    plain_message = f"""
    Password Reset OTP

    You requested a password reset for your LocalFinds account.

    Your OTP is: {verification_code}

    This OTP will expire in {expiry_minutes} minutes.

    If you didn't request this, please ignore this email.
    """

    return subject, plain_message, html_message


def build_test_email():
    """Subject and body used to check the mail configuration end to end."""
    return (
        'Test Email from LocalFinds',
        'This is a test email to verify your email configuration is working properly.',
    )
