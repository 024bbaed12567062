from django.db import migrations, models


def number_existing_messages(apps, schema_editor):
    Conversation = apps.get_model("chat", "Conversation")
    Message = apps.get_model("chat", "Message")

    for conversation in Conversation.objects.all().iterator():
        sequence = 0
        for message in Message.objects.filter(conversation=conversation).order_by(
            "created_at", "id"
        ):
            sequence += 1
            message.sequence = sequence
            message.save(update_fields=["sequence"])
        conversation.last_sequence = sequence
        conversation.save(update_fields=["last_sequence"])


class Migration(migrations.Migration):

    dependencies = [
        ("chat", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="conversation",
            name="last_sequence",
            field=models.PositiveBigIntegerField(
                default=0,
                editable=False,
                help_text="Sequence number handed to the most recent message",
            ),
        ),
        migrations.AddField(
            model_name="message",
            name="sequence",
            field=models.PositiveBigIntegerField(
                default=0,
                editable=False,
                help_text="Insertion order within the conversation",
            ),
            preserve_default=False,
        ),
        migrations.RunPython(number_existing_messages, migrations.RunPython.noop),
        migrations.AlterModelOptions(
            name="message",
            options={"ordering": ["created_at", "sequence"]},
        ),
        migrations.RemoveIndex(
            model_name="message",
            name="chat_msg_conv_created_idx",
        ),
        migrations.AddConstraint(
            model_name="message",
            constraint=models.UniqueConstraint(
                fields=("conversation", "sequence"),
                name="unique_message_sequence",
            ),
        ),
    ]
