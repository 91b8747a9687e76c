import django.db.models.deletion
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='DispatchRequest',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('responder_class', models.CharField(choices=[('doctor', 'Doctor'), ('transit', 'Transit Service')], max_length=10)),
                ('origin_latitude', models.FloatField()),
                ('origin_longitude', models.FloatField()),
                ('note', models.TextField(blank=True, default='')),
                ('search_radius', models.FloatField()),
                ('claimed_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_count', models.PositiveIntegerField(default=0)),
                ('resolved', models.BooleanField(default=False)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('claimant', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='claimed_requests', to=settings.AUTH_USER_MODEL)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='derived_requests', to='dispatch.dispatchrequest')),
                ('requester', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='dispatch_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'dispatch_requests',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='DispatchOffer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('offered_at', models.DateTimeField(auto_now_add=True)),
                ('declined_at', models.DateTimeField(blank=True, null=True)),
                ('request', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offers', to='dispatch.dispatchrequest')),
                ('responder', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='dispatch_offers', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'dispatch_offers',
                'ordering': ['id'],
                'constraints': [models.UniqueConstraint(fields=('request', 'responder'), name='unique_request_responder')],
            },
        ),
    ]
