from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('marketplace', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='passwordresettoken',
            name='reset_completed_at',
            field=models.DateTimeField(blank=True, help_text='Set when the reset session issued for this OTP changed the password', null=True),
        ),
    ]
