from rest_framework import serializers

from .models import Student


class StudentSerializer(serializers.ModelSerializer):
    studentId = serializers.CharField(source="student_id", read_only=True)
    # "class" is a keyword, hence the explicit field mapping.
    classLabel = serializers.CharField(source="class_label", read_only=True)

    class Meta:
        model = Student
        fields = ['id', 'studentId', 'name', 'classLabel']

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['class'] = data.pop('classLabel')
        return data
