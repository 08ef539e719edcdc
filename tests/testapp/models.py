from django.db import models


class TrainingFile(models.Model):
    name = models.CharField(max_length=255)
    content = models.TextField(blank=True)

    def __str__(self):
        return self.name
