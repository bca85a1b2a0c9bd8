import threading
import time

from creatorlink.core.conversation_lock import active_lock_count, conversation_lock


class TestConversationLock:
    def test_entries_are_released(self):
        before = active_lock_count()

        with conversation_lock("01HCONVERSATIONAAAAAAAAAAA"):
            assert active_lock_count() == before + 1

        assert active_lock_count() == before

    def test_same_conversation_is_serialized(self):
        inside = []
        overlaps = []

        def worker():
            with conversation_lock("01HCONVERSATIONBBBBBBBBBBB"):
                if inside:
                    overlaps.append(True)
                inside.append(1)
                time.sleep(0.01)
                inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []

    def test_different_conversations_do_not_block(self):
        with conversation_lock("01HCONVERSATIONCCCCCCCCCCC"):
            acquired = threading.Event()

            def worker():
                with conversation_lock("01HCONVERSATIONDDDDDDDDDDD"):
                    acquired.set()

            thread = threading.Thread(target=worker)
            thread.start()
            assert acquired.wait(timeout=2)
            thread.join()
