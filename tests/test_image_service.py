import io
import os
from werkzeug.datastructures import FileStorage
from freshshop.extensions import db, cache
from freshshop.exceptions import InvalidStateError, NotFoundError, ValidationError
from freshshop.models import Image, Supplier, GroupBuy
from freshshop.services.image_service import ImageService, DEDUP_LOCK_KEY, remap_images, bytes_sha256
from tests.base import BaseTestCase


class RemapImagesTestCase(BaseTestCase):
    def test_collapses_duplicates_in_first_seen_order(self):
        mapping = {'b.jpg': 'a.jpg', 'a.jpg': 'a.jpg', 'c.jpg': 'c.jpg'}
        self.assertEqual(remap_images(['c.jpg', 'b.jpg', 'a.jpg'], mapping), ['c.jpg', 'a.jpg'])

    def test_keeps_unmapped_names(self):
        self.assertEqual(remap_images(['gone.jpg', 'b.jpg'], {'b.jpg': 'a.jpg'}), ['gone.jpg', 'a.jpg'])


class DeduplicateImagesTestCase(BaseTestCase):
    def _write(self, name, content):
        with open(os.path.join(self.upload_dir, name), 'wb') as f:
            f.write(content)

    def test_duplicate_files_collapse_to_canonical(self):
        """같은 해시의 b.jpg, a.jpg 중 a.jpg 만 남고 참조도 a.jpg 로 변경"""
        self._write('b.jpg', b'same-bytes')
        self._write('a.jpg', b'same-bytes')
        self._write('c.png', b'other-bytes')
        supplier = self.make_supplier(images=['b.jpg'])
        untouched = self.make_supplier(images=['c.png'])
        group_buy = self.make_group_buy(images=['b.jpg', 'a.jpg', 'c.png'])

        report = ImageService.deduplicate_images()

        self.assertEqual(report['total_files_scanned'], 3)
        self.assertEqual(report['unique_image_count'], 2)
        self.assertEqual(report['duplicate_files_found'], 1)
        self.assertEqual(report['duplicate_files_removed'], 1)
        self.assertEqual(report['affected_suppliers'], [{'id': supplier.id, 'name': supplier.name}])
        self.assertEqual([g['id'] for g in report['affected_group_buys']], [group_buy.id])

        self.assertEqual(sorted(os.listdir(self.upload_dir)), ['a.jpg', 'c.png'])
        self.assertEqual(db.session.get(Supplier, supplier.id).images, ['a.jpg'])
        self.assertEqual(db.session.get(Supplier, untouched.id).images, ['c.png'])
        self.assertEqual(db.session.get(GroupBuy, group_buy.id).images, ['a.jpg', 'c.png'])
        self.assertEqual(
            sorted(i.filename for i in Image.query.all()), ['a.jpg', 'c.png']
        )

    def test_second_run_is_noop(self):
        self._write('x.jpg', b'dup')
        self._write('y.jpg', b'dup')
        self.make_supplier(images=['y.jpg'])
        ImageService.deduplicate_images()

        report = ImageService.deduplicate_images()
        self.assertEqual(report['duplicate_files_found'], 0)
        self.assertEqual(report['duplicate_files_removed'], 0)
        self.assertEqual(report['affected_suppliers'], [])
        self.assertEqual(report['affected_group_buys'], [])
        self.assertEqual(Image.query.count(), 1)

    def test_catalog_row_follows_canonical_file(self):
        uploaded = ImageService.save_upload(
            FileStorage(stream=io.BytesIO(b'same-bytes'), filename='photo.png', content_type='image/png')
        )
        self._write('0.png', b'same-bytes')

        ImageService.deduplicate_images()

        self.assertEqual(os.listdir(self.upload_dir), ['0.png'])
        live = Image.query.filter_by(is_deleted=False).all()
        self.assertEqual([i.filename for i in live], ['0.png'])
        self.assertNotEqual(uploaded['filename'], '0.png')

        again = ImageService.save_upload(
            FileStorage(stream=io.BytesIO(b'same-bytes'), filename='again.png', content_type='image/png')
        )
        self.assertTrue(again['reused'])
        self.assertEqual(again['filename'], '0.png')

    def test_catalog_row_of_removed_duplicate_is_hidden(self):
        self._write('a.jpg', b'same-bytes')
        self._write('b.jpg', b'same-bytes')
        digest = bytes_sha256(b'same-bytes')
        db.session.add(Image(filename='a.jpg', original_name='a.jpg', hash=digest))
        db.session.add(Image(filename='b.jpg', original_name='b.jpg', hash=digest))
        db.session.commit()

        ImageService.deduplicate_images()

        live = Image.query.filter_by(is_deleted=False).all()
        self.assertEqual([i.filename for i in live], ['a.jpg'])
        hidden = Image.query.filter_by(filename='b.jpg').one()
        self.assertTrue(hidden.is_deleted)

    def test_empty_folder(self):
        report = ImageService.deduplicate_images()
        self.assertEqual(report['total_files_scanned'], 0)
        self.assertEqual(report['unique_image_count'], 0)

    def test_concurrent_run_is_rejected(self):
        cache.add(DEDUP_LOCK_KEY, 1, timeout=60)
        with self.assertRaises(InvalidStateError):
            ImageService.deduplicate_images()

    def test_lock_released_after_run(self):
        ImageService.deduplicate_images()
        self.assertIsNone(cache.get(DEDUP_LOCK_KEY))


class UploadTestCase(BaseTestCase):
    def _file(self, content=b'\x89PNG-data', filename='photo.png', mimetype='image/png'):
        return FileStorage(stream=io.BytesIO(content), filename=filename, content_type=mimetype)

    def test_upload_stores_uuid_name_and_catalog_entry(self):
        result = ImageService.save_upload(self._file())
        self.assertTrue(result['filename'].endswith('.png'))
        self.assertFalse(result['reused'])
        self.assertTrue(os.path.exists(os.path.join(self.upload_dir, result['filename'])))
        self.assertTrue(result['url'].endswith(f"/images/{result['filename']}"))
        self.assertEqual(Image.query.one().hash, bytes_sha256(b'\x89PNG-data'))

    def test_same_content_reuses_existing_file(self):
        first = ImageService.save_upload(self._file())
        second = ImageService.save_upload(self._file(filename='again.png'))
        self.assertTrue(second['reused'])
        self.assertEqual(first['filename'], second['filename'])
        self.assertEqual(len(os.listdir(self.upload_dir)), 1)

    def test_rejects_non_image(self):
        with self.assertRaises(ValidationError):
            ImageService.save_upload(self._file(filename='doc.txt', mimetype='text/plain'))

    def test_delete_file(self):
        result = ImageService.save_upload(self._file())
        ImageService.delete_file(result['filename'])
        self.assertEqual(os.listdir(self.upload_dir), [])
        with self.assertRaises(NotFoundError):
            ImageService.delete_file(result['filename'])

    def test_delete_rejects_path_traversal(self):
        with self.assertRaises(ValidationError):
            ImageService.delete_file('../secret.txt')
