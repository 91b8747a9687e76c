from rest_framework import serializers
from .models import User, Role
from responders.models import ResponderProfile


class UserSerializer(serializers.ModelSerializer):
    has_device = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "role",
            "phone_number",
            "designation",
            "has_device",
        ]
        read_only_fields = ["id", "email", "role", "has_device"]

    def get_has_device(self, obj):
        from realtime.gateway import has_device_handle
        return has_device_handle(obj.device_id)


class PublicProfileSerializer(serializers.ModelSerializer):
    """
    Sanitized profile handed to the other party of a request
    (no credentials, no device handle).
    """

    class Meta:
        model = User
        fields = ["email", "username", "role", "phone_number", "designation"]
        read_only_fields = fields


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(choices=Role.choices, required=False)

    def validate(self, data):
        from .identity import verify_identity
        from services.dispatch_management.exceptions import UnauthorizedError

        try:
            return verify_identity(data.get("role"), data["email"].lower(), data["password"])
        except UnauthorizedError as exc:
            raise serializers.ValidationError(exc.message)


class DeviceSerializer(serializers.Serializer):
    """Register or clear the push handle of the current user."""
    device_id = serializers.CharField(allow_blank=True, allow_null=True, max_length=255)


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True)
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)

    class Meta:
        model = User
        fields = [
            'username', 'password', 'email', 'role', 'phone_number',
            'designation', 'device_id', 'latitude', 'longitude',
        ]

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value.lower()

    def validate(self, data):
        has_lat = data.get('latitude') is not None
        has_lon = data.get('longitude') is not None
        if has_lat != has_lon:
            raise serializers.ValidationError({
                'latitude': 'Latitude and longitude must be provided together'
            })
        if has_lat and data['role'] == Role.CLIENT:
            raise serializers.ValidationError({
                'latitude': 'Only responders report a position'
            })
        return data

    def create(self, validated_data):
        latitude = validated_data.pop('latitude', None)
        longitude = validated_data.pop('longitude', None)

        user = User.objects.create_user(
            username=validated_data['username'],
            email=validated_data['email'],
            password=validated_data['password'],
            role=validated_data['role'],
            phone_number=validated_data.get('phone_number', ''),
            designation=validated_data.get('designation', ''),
            device_id=validated_data.get('device_id'),
        )

        # Doctors and transit services get a responder profile right away
        if user.is_responder:
            profile = ResponderProfile(user=user)
            if latitude is not None:
                profile.current_latitude = latitude
                profile.current_longitude = longitude
            profile.save()

        return user


class ProfileUpdateSerializer(serializers.ModelSerializer):
    """Edit the current account. Email and role are fixed at registration."""
    password = serializers.CharField(write_only=True, required=False, min_length=8)

    class Meta:
        model = User
        fields = ['username', 'phone_number', 'designation', 'password']

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        for field, value in validated_data.items():
            setattr(instance, field, value)
        if password:
            instance.set_password(password)
        instance.save()
        return instance
