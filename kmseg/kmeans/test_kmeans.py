import unittest

import numpy as np
from sklearn.cluster import KMeans as SklearnKMeans

from kmseg.kmeans import (
    KMeans,
    KMeansConfig,
    Backend,
    InitMethod,
    PixelBuffer,
    ConvergenceStatus,
    ReseedEvent,
    DistinctInitializer,
    RandomInitializer,
    ParallelBackend,
    create_initializer,
    segment_image,
)


def _random_image(height, width, n_channels, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, n_channels), dtype=np.uint8)


def _blob_pixels(seed=0):
    """Three well separated color blobs, 100 pixels each."""
    rng = np.random.default_rng(seed)
    means = np.array([[30, 30, 30], [128, 200, 60], [230, 40, 220]])
    blobs = [np.clip(rng.normal(m, 8, size=(100, 3)), 0, 255) for m in means]
    return np.vstack(blobs).round().astype(np.uint8)


class ConfigTestCase(unittest.TestCase):

    def test_defaults(self):
        config = KMeansConfig()
        self.assertEqual(config.backend, Backend.SERIAL)
        self.assertEqual(config.init, InitMethod.DISTINCT)
        self.assertEqual(config.max_iter, 150)

    def test_string_values_are_coerced(self):
        config = KMeansConfig(backend='parallel', init='random', n_workers=3)
        self.assertEqual(config.backend, Backend.PARALLEL)
        self.assertEqual(config.init, InitMethod.RANDOM)

    def test_invalid_values(self):
        for kwargs in ({'n_clusters': 1}, {'max_iter': 0}, {'n_workers': 0},
                       {'backend': 'gpu'}, {'init': 'k-means++'}):
            with self.subTest(**kwargs):
                with self.assertRaises(ValueError):
                    KMeansConfig(**kwargs)

    def test_cuda_backend_is_not_implemented(self):
        with self.assertRaises(NotImplementedError):
            KMeans(KMeansConfig(backend='cuda'))


class PixelBufferTestCase(unittest.TestCase):

    def test_view_shares_memory(self):
        buffer = PixelBuffer.from_array(_random_image(2, 3, 4))
        self.assertEqual(buffer.n_pixels, 6)
        buffer.pixels[5] = [1, 2, 3, 4]
        np.testing.assert_array_equal(buffer.data[20:24], [1, 2, 3, 4])
        np.testing.assert_array_equal(buffer.to_array()[1, 2], [1, 2, 3, 4])

    def test_from_array_copies(self):
        image = _random_image(2, 2, 3)
        buffer = PixelBuffer.from_array(image)
        buffer.pixels[:] = 0
        self.assertTrue(image.any())

    def test_gray_image(self):
        image = np.arange(6, dtype=np.uint8).reshape(2, 3)
        buffer = PixelBuffer.from_array(image)
        self.assertEqual(buffer.n_channels, 1)
        np.testing.assert_array_equal(buffer.to_array(), image)

    def test_invalid_buffers(self):
        with self.assertRaises(ValueError):
            PixelBuffer(np.zeros(5, dtype=np.uint8), width=2, height=1, n_channels=3)
        with self.assertRaises(ValueError):
            PixelBuffer.from_array(np.zeros((2, 2, 3), dtype=np.float32))


class InitializerTestCase(unittest.TestCase):

    def test_distinct_indices(self):
        indices = DistinctInitializer().select(10, 10, np.random.default_rng(1))
        self.assertEqual(sorted(indices), list(range(10)))

    def test_distinct_needs_enough_pixels(self):
        with self.assertRaises(ValueError):
            DistinctInitializer().select(3, 4, np.random.default_rng(1))

    def test_random_indices_in_range(self):
        indices = RandomInitializer().select(5, 50, np.random.default_rng(1))
        self.assertTrue(np.all((indices >= 0) & (indices < 5)))

    def test_centers_copy_pixels(self):
        pixels = _random_image(4, 4, 3).reshape(-1, 3)
        for method in InitMethod:
            initializer = create_initializer(method)
            centers = initializer(pixels, 3, np.random.default_rng(7))
            again = initializer(pixels, 3, np.random.default_rng(7))
            self.assertEqual(centers.dtype, np.float64)
            np.testing.assert_array_equal(centers, again)
            for center in centers:
                self.assertTrue(np.any(np.all(pixels == center, axis=1)))


class KMeansScenarioTestCase(unittest.TestCase):

    def test_two_by_two_converges_in_one_iteration(self):
        image = np.array([[[0, 0, 0], [0, 0, 0]],
                          [[255, 255, 255], [255, 255, 255]]], dtype=np.uint8)
        buffer = PixelBuffer.from_array(image)
        kmeans = KMeans(KMeansConfig(n_clusters=2))
        result = kmeans.segment(buffer, initial_centers=buffer.pixels[[0, 2]])

        np.testing.assert_array_equal(result.labels, [0, 0, 1, 1])
        np.testing.assert_array_equal(result.centers, [[0, 0, 0], [255, 255, 255]])
        self.assertEqual(result.sse, 0.0)
        self.assertEqual(result.n_iter, 1)
        self.assertEqual(result.status, ConvergenceStatus.CONVERGED)
        self.assertTrue(result.converged)
        np.testing.assert_array_equal(buffer.to_array(), image)

    def test_starved_cluster_is_reseeded_on_farthest_pixel(self):
        pixels = np.array([[0], [10], [20], [30]], dtype=np.uint8)
        kmeans = KMeans(KMeansConfig(n_clusters=2))
        result = kmeans.fit(pixels, initial_centers=np.array([[15.0], [255.0]]))

        # Cluster 1 gets nothing in the first pass; pixel 0 is the first of
        # the two farthest pixels from center 15
        self.assertEqual(result.reseeds, [ReseedEvent(iteration=0, cluster=1, pixel=0)])
        np.testing.assert_array_equal(result.labels, [1, 0, 0, 0])
        np.testing.assert_array_equal(result.centers, [[20.0], [0.0]])
        self.assertEqual(result.n_iter, 2)
        self.assertEqual(result.sse, 200.0)
        self.assertEqual(result.sse_history, [500.0, 275.0, 200.0])

    def test_reseed_zeroes_distance_entry(self):
        pixels = np.array([[0], [10], [20], [30]], dtype=np.uint8)
        kmeans = KMeans(KMeansConfig(n_clusters=2, max_iter=1))
        result = kmeans.fit(pixels, initial_centers=np.array([[15.0], [255.0]]))

        self.assertEqual(result.status, ConvergenceStatus.MAX_ITERS_REACHED)
        # Distances after the reseed: [0 (zeroed), 25, 25, 225]
        self.assertEqual(result.sse, 275.0)
        np.testing.assert_array_equal(result.centers, [[15.0], [0.0]])

    def test_identical_pixels_do_not_produce_undefined_centers(self):
        pixels = np.full((6, 3), 42, dtype=np.uint8)
        result = KMeans(KMeansConfig(n_clusters=3, random_state=0)).fit(pixels)
        self.assertTrue(np.all(np.isfinite(result.centers)))
        self.assertEqual(result.sse, 0.0)
        self.assertTrue(result.converged)

    def test_fewer_pixels_than_clusters(self):
        with self.assertRaises(ValueError):
            KMeans(KMeansConfig(n_clusters=5)).fit(np.zeros((4, 3), dtype=np.uint8))

    def test_bad_initial_centers(self):
        pixels = np.zeros((4, 3), dtype=np.uint8)
        with self.assertRaises(ValueError):
            KMeans(KMeansConfig(n_clusters=2)).fit(pixels, initial_centers=np.zeros((2, 4)))

    def test_result_before_fit(self):
        with self.assertRaises(RuntimeError):
            KMeans().result


class KMeansPropertiesTestCase(unittest.TestCase):

    def setUp(self):
        self.image = _random_image(24, 32, 3, seed=3)

    def _run(self, **kwargs):
        config = KMeansConfig(n_clusters=6, random_state=11, **kwargs)
        buffer = PixelBuffer.from_array(self.image)
        result = KMeans(config).segment(buffer)
        return buffer, result

    def test_fixed_seed_is_deterministic(self):
        buffer_a, result_a = self._run()
        buffer_b, result_b = self._run()
        np.testing.assert_array_equal(buffer_a.data, buffer_b.data)
        self.assertEqual(result_a.n_iter, result_b.n_iter)
        self.assertEqual(result_a.sse, result_b.sse)

    def test_serial_and_parallel_agree(self):
        _, serial = self._run()
        for n_workers in (1, 2, 5):
            with self.subTest(n_workers=n_workers):
                _, parallel = self._run(backend='parallel', n_workers=n_workers)
                np.testing.assert_array_equal(parallel.labels, serial.labels)
                np.testing.assert_allclose(parallel.centers, serial.centers, rtol=1e-12)
                np.testing.assert_allclose(parallel.sse, serial.sse, rtol=1e-9)
                self.assertEqual(parallel.n_iter, serial.n_iter)

    def test_parallel_with_more_workers_than_pixels(self):
        pixels = np.array([[0, 0, 0], [10, 10, 10], [250, 250, 250]], dtype=np.uint8)
        config = KMeansConfig(n_clusters=2, backend='parallel', n_workers=8)
        result = KMeans(config).fit(pixels, initial_centers=pixels[[0, 2]])
        np.testing.assert_array_equal(result.labels, [0, 0, 1])
        self.assertEqual(result.sse, 75.0 + 75.0)

    def test_sse_does_not_increase_without_reseed(self):
        _, result = self._run(init='random', max_iter=60)
        reseed_iterations = {event.iteration for event in result.reseeds}
        history = result.sse_history
        for i in range(1, len(history)):
            if i - 1 in reseed_iterations:
                continue
            self.assertLessEqual(history[i], history[i - 1] * (1 + 1e-9))

    def test_labels_are_valid(self):
        _, result = self._run()
        self.assertTrue(np.all((result.labels >= 0) & (result.labels < 6)))
        self.assertEqual(result.cluster_counts().sum(), self.image.shape[0] * self.image.shape[1])

    def test_labels_reshape_to_image_grid(self):
        buffer, result = self._run()
        label_map = result.reshape_labels((buffer.height, buffer.width))
        self.assertEqual(label_map.shape, self.image.shape[:2])
        np.testing.assert_array_equal(label_map[1], result.labels[buffer.width:2 * buffer.width])

    def test_terminates_at_the_converging_iteration(self):
        _, result = self._run()
        self.assertTrue(result.converged)
        # One SSE entry per assignment pass, the last one found no changes
        self.assertEqual(len(result.sse_history), result.n_iter + 1)
        self.assertEqual(result.sse, result.sse_history[-1])

    def test_iteration_cap_is_not_an_error(self):
        _, result = self._run(max_iter=1)
        self.assertEqual(result.status, ConvergenceStatus.MAX_ITERS_REACHED)
        self.assertEqual(result.n_iter, 1)
        self.assertEqual(len(result.sse_history), 1)

    def test_output_uses_only_rounded_center_colors(self):
        buffer, result = self._run()
        np.testing.assert_array_equal(buffer.pixels, result.rounded_centers[result.labels])
        self.assertLessEqual(len(np.unique(buffer.pixels, axis=0)), 6)

    def test_materialize_is_idempotent(self):
        kmeans = KMeans(KMeansConfig(n_clusters=4, random_state=5))
        buffer = PixelBuffer.from_array(self.image)
        kmeans.segment(buffer)
        once = buffer.data.copy()
        kmeans.materialize(buffer)
        np.testing.assert_array_equal(buffer.data, once)

    def test_materialize_size_mismatch(self):
        kmeans = KMeans(KMeansConfig(n_clusters=2, random_state=5))
        kmeans.fit(PixelBuffer.from_array(self.image))
        with self.assertRaises(ValueError):
            kmeans.materialize(PixelBuffer.from_array(self.image[:2]))

    def test_segment_image_keeps_input(self):
        gray = self.image[:, :, 0].copy()
        segmented, result = segment_image(gray, KMeansConfig(n_clusters=3, random_state=1))
        np.testing.assert_array_equal(gray, self.image[:, :, 0])
        self.assertEqual(segmented.shape, gray.shape)
        self.assertLessEqual(len(np.unique(segmented)), 3)
        self.assertEqual(result.centers.shape, (3, 1))

    def test_explicit_parallel_backend_instance(self):
        _, serial = self._run()
        kmeans = KMeans(KMeansConfig(n_clusters=6, random_state=11),
                        backend=ParallelBackend(n_workers=3))
        result = kmeans.fit(PixelBuffer.from_array(self.image))
        np.testing.assert_array_equal(result.labels, serial.labels)


class SklearnReferenceTestCase(unittest.TestCase):

    def test_same_fixed_point_as_lloyd(self):
        pixels = _blob_pixels()
        init = pixels[[0, 100, 200]].astype(np.float64)

        result = KMeans(KMeansConfig(n_clusters=3)).fit(pixels, initial_centers=init)

        reference = SklearnKMeans(n_clusters=3, init=init, n_init=1, max_iter=150,
                                  tol=0.0, algorithm='lloyd')
        reference.fit(pixels.astype(np.float64))

        self.assertTrue(result.converged)
        np.testing.assert_array_equal(result.labels, reference.labels_)
        np.testing.assert_allclose(result.centers, reference.cluster_centers_, rtol=1e-9)
        np.testing.assert_allclose(result.sse, reference.inertia_, rtol=1e-6)


if __name__ == '__main__':
    unittest.main()
