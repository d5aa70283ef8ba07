import unittest

import ast
import os
import sys
from concurrent.futures import ThreadPoolExecutor

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from schurlas import (
    ComplexConjugatePair,
    ConvergenceFailure,
    FrancisConfig,
    InvalidIndexError,
    RealEigenpair,
    compute,
    compute_flat,
)
from schurlas.validation import max_relative_eigenvalue_error, orthogonality_error, relative_residual


SCENARIO = [
    [10.0, 1.0, 1.1, 1.2, 1.3],
    [1.0, 20.0, 2.1, 2.2, 2.3],
    [1.1, 2.1, 30.0, 3.1, 3.2],
    [1.2, 2.2, 3.1, 40.0, 4.1],
    [1.3, 2.3, 3.2, 4.1, 50.0],
]


def residual(A, result) -> float:
    V = result.eigenvector_matrix()
    D = result.block_diagonal_d()
    return relative_residual(np.asarray(A, dtype=np.float64), V, D)


class TestCompute(unittest.TestCase):
    def test_scenario_symmetric_5x5(self) -> None:
        result = compute(SCENARIO)
        real = result.real_eigenvalues()
        np.testing.assert_array_equal(result.imag_eigenvalues(), 0.0)
        self.assertTrue(np.all(real > 0.0))
        np.testing.assert_allclose(np.sort(real), np.linalg.eigvalsh(np.array(SCENARIO)), rtol=1e-12)

        V = result.eigenvector_matrix()
        A = np.array(SCENARIO)
        self.assertLess(np.max(np.abs(A @ V - V @ result.block_diagonal_d())), 1e-10)
        np.testing.assert_allclose(V.T @ V, np.eye(5), atol=1e-10)
        self.assertLess(orthogonality_error(V), 1e-10)

    def test_random_reconstruction(self) -> None:
        rng = np.random.default_rng(20240601)
        for n in (2, 3, 4, 5, 7, 10, 16, 23, 31, 50):
            with self.subTest(n=n):
                A = rng.standard_normal((n, n))
                result = compute(A)
                self.assertLess(residual(A, result), 1e-10)
                scale = np.finfo(float).eps * np.linalg.norm(A)
                err = max_relative_eigenvalue_error(
                    result.real_eigenvalues(), result.imag_eigenvalues(), np.linalg.eigvals(A), scale
                )
                self.assertLess(err, 1e-8)

    def test_random_symmetric_orthogonality(self) -> None:
        rng = np.random.default_rng(77)
        for n in (3, 8, 20):
            with self.subTest(n=n):
                B = rng.standard_normal((n, n))
                A = B + B.T
                result = compute(A)
                np.testing.assert_array_equal(result.imag_eigenvalues(), 0.0)
                self.assertLess(orthogonality_error(result.eigenvector_matrix()), 1e-9)
                self.assertLess(residual(A, result), 1e-12)

    def test_repeated_symmetric_eigenvalues_keep_orthogonality(self) -> None:
        rng = np.random.default_rng(404)
        spectrum = np.array([1.0, 1.0, 1.0, 2.0, 3.0, 3.0])
        for seed in range(20):
            with self.subTest(seed=seed):
                Qo = np.linalg.qr(rng.standard_normal((6, 6)))[0]
                M = (Qo * spectrum) @ Qo.T
                A = 0.5 * (M + M.T)
                result = compute(A)
                V = result.eigenvector_matrix()
                np.testing.assert_array_equal(result.imag_eigenvalues(), 0.0)
                np.testing.assert_allclose(np.sort(result.real_eigenvalues()), spectrum, atol=1e-13)
                self.assertLess(orthogonality_error(V), 1e-12)
                self.assertLess(residual(A, result), 1e-13)

    def test_near_identity_symmetric(self) -> None:
        A = np.eye(4)
        A[0, 3] = A[3, 0] = 1e-17
        result = compute(A)
        np.testing.assert_allclose(result.real_eigenvalues(), 1.0, atol=1e-15)
        self.assertLess(orthogonality_error(result.eigenvector_matrix()), 1e-12)
        self.assertLess(residual(A, result), 1e-14)

    def test_rotation_block(self) -> None:
        result = compute([[0.0, -1.0], [1.0, 0.0]])
        np.testing.assert_allclose(result.real_eigenvalues(), [0.0, 0.0], atol=1e-15)
        np.testing.assert_allclose(result.imag_eigenvalues(), [1.0, -1.0])
        self.assertLess(residual([[0.0, -1.0], [1.0, 0.0]], result), 1e-14)

        D = result.block_diagonal_d()
        np.testing.assert_allclose(D, [[0.0, 1.0], [-1.0, 0.0]], atol=1e-15)

    def test_rotation_embedded_in_identity(self) -> None:
        A = np.eye(4)
        A[1:3, 1:3] = [[0.0, -1.0], [1.0, 0.0]]
        result = compute(A)
        imag = result.imag_eigenvalues()
        np.testing.assert_allclose(imag, [0.0, 1.0, -1.0, 0.0])
        np.testing.assert_allclose(result.real_eigenvalues(), [1.0, 0.0, 0.0, 1.0])

        pairs = result.eigenpairs()
        self.assertEqual([type(p) for p in pairs], [RealEigenpair, ComplexConjugatePair, RealEigenpair])
        self.assertEqual(pairs[1].imag, 1.0)

        # imag_eigenvector: +i member uses column k+1, -i member column k-1.
        V = result.eigenvector_matrix()
        np.testing.assert_array_equal(result.imag_eigenvector(1), V[:, 2])
        np.testing.assert_array_equal(result.imag_eigenvector(2), V[:, 1])
        np.testing.assert_array_equal(result.imag_eigenvector(0), np.zeros(4))
        v = result.real_eigenvector(1) + 1j * result.imag_eigenvector(1)
        np.testing.assert_allclose(A @ v, 1j * v, atol=1e-14)
        self.assertLess(residual(A, result), 1e-14)

    def test_n_equals_one(self) -> None:
        result = compute([[4.25]])
        self.assertEqual(result.n, 1)
        self.assertEqual(result.real_eigenvalue(0), 4.25)
        self.assertEqual(result.imag_eigenvalue(0), 0.0)
        np.testing.assert_array_equal(result.eigenvector_matrix(), [[1.0]])
        np.testing.assert_array_equal(result.real_eigenvector(0), [1.0])

    def test_zero_matrix(self) -> None:
        result = compute(np.zeros((3, 3)))
        np.testing.assert_array_equal(result.real_eigenvalues(), 0.0)
        np.testing.assert_array_equal(result.eigenvector_matrix(), np.eye(3))

    def test_idempotent(self) -> None:
        rng = np.random.default_rng(5)
        A = rng.standard_normal((12, 12))
        r1 = compute(A)
        r2 = compute(A)
        self.assertIsNot(r1, r2)
        np.testing.assert_array_equal(r1.real_eigenvalues(), r2.real_eigenvalues())
        np.testing.assert_array_equal(r1.imag_eigenvalues(), r2.imag_eigenvalues())
        np.testing.assert_array_equal(r1.eigenvector_matrix(), r2.eigenvector_matrix())

    def test_input_not_modified(self) -> None:
        rng = np.random.default_rng(6)
        A = rng.standard_normal((6, 6))
        A_copy = A.copy()
        compute(A)
        np.testing.assert_array_equal(A, A_copy)

    def test_concurrent_calls(self) -> None:
        rng = np.random.default_rng(9)
        mats = [rng.standard_normal((n, n)) for n in (5, 9, 14, 20, 5, 9, 14, 20)]
        serial = [compute(A) for A in mats]
        with ThreadPoolExecutor(max_workers=4) as pool:
            threaded = list(pool.map(compute, mats))
        for s, t in zip(serial, threaded):
            np.testing.assert_array_equal(s.real_eigenvalues(), t.real_eigenvalues())
            np.testing.assert_array_equal(s.imag_eigenvalues(), t.imag_eigenvalues())

    def test_schur_factorization_exposed(self) -> None:
        rng = np.random.default_rng(10)
        A = rng.standard_normal((7, 7))
        result = compute(A)
        T = result.schur_form()
        Q = result.schur_vectors()
        np.testing.assert_allclose(Q @ T @ Q.T, A, atol=1e-12)
        self.assertGreater(result.iterations, 0)
        self.assertEqual(result.iterations, result.report.iterations)

    def test_convergence_failure_propagates(self) -> None:
        P = np.zeros((5, 5))
        P[np.arange(1, 5), np.arange(0, 4)] = 1.0
        P[0, 4] = 1.0
        with self.assertLogs("schurlas.francis", level="WARNING"):
            with self.assertRaises(ConvergenceFailure):
                compute(P, config=FrancisConfig(max_iterations_factor=1))


class TestEigenResultAccessors(unittest.TestCase):
    def setUp(self) -> None:
        rng = np.random.default_rng(3)
        self.A = rng.standard_normal((6, 6))
        self.result = compute(self.A)

    def test_dimensions(self) -> None:
        self.assertEqual(self.result.number_of_rows, 6)
        self.assertEqual(self.result.number_of_columns, 6)
        self.assertEqual(self.result.eigenvector_matrix().shape, (6, 6))
        self.assertEqual(self.result.block_diagonal_d().shape, (6, 6))

    def test_transpose(self) -> None:
        np.testing.assert_array_equal(
            self.result.eigenvector_matrix_transpose(), self.result.eigenvector_matrix().T
        )

    def test_accessors_return_copies(self) -> None:
        V = self.result.eigenvector_matrix()
        V[:] = 0.0
        self.assertFalse(np.all(self.result.eigenvector_matrix() == 0.0))
        real = self.result.real_eigenvalues()
        real[:] = 123.0
        self.assertFalse(np.any(self.result.real_eigenvalues() == 123.0))

    def test_scalar_accessors_match_arrays(self) -> None:
        real = self.result.real_eigenvalues()
        imag = self.result.imag_eigenvalues()
        for i in range(6):
            self.assertEqual(self.result.real_eigenvalue(i), real[i])
            self.assertEqual(self.result.imag_eigenvalue(i), imag[i])
            np.testing.assert_array_equal(self.result.real_eigenvector(i), self.result.eigenvector_matrix()[:, i])

    def test_d_matches_eigenvalues(self) -> None:
        D = self.result.block_diagonal_d()
        real = self.result.real_eigenvalues()
        imag = self.result.imag_eigenvalues()
        np.testing.assert_array_equal(np.diag(D), real)
        for i in range(6):
            if imag[i] > 0:
                self.assertEqual(D[i, i + 1], imag[i])
                self.assertEqual(D[i + 1, i], -imag[i])

    def test_invalid_index(self) -> None:
        for bad in (-1, 6, 100):
            with self.subTest(index=bad):
                with self.assertRaises(InvalidIndexError):
                    self.result.real_eigenvalue(bad)
                with self.assertRaises(InvalidIndexError):
                    self.result.imag_eigenvector(bad)
                with self.assertRaises(IndexError):
                    self.result.real_eigenvector(bad)

    def test_report_is_read_only(self) -> None:
        iterations = self.result.iterations
        with self.assertRaises(AttributeError):
            self.result.report.iterations = 0
        self.assertEqual(self.result.iterations, iterations)


class TestInputHandling(unittest.TestCase):
    def test_rejects_empty(self) -> None:
        for bad in ([], np.zeros((0, 0))):
            with self.assertRaises(ValueError):
                compute(bad)

    def test_rejects_n_zero(self) -> None:
        with self.assertRaises(ValueError):
            compute([[1.0]], n=0)
        with self.assertRaises(ValueError):
            compute_flat([], 0)

    def test_rejects_non_square(self) -> None:
        with self.assertRaises(ValueError):
            compute([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        with self.assertRaises(ValueError):
            compute(np.zeros((3, 2)))

    def test_rejects_ragged_rows(self) -> None:
        with self.assertRaises(ValueError):
            compute([[1.0, 2.0], [3.0]])

    def test_rejects_non_finite(self) -> None:
        with self.assertRaises(ValueError):
            compute([[1.0, np.nan], [0.0, 1.0]])
        with self.assertRaises(ValueError):
            compute([[1.0, 0.0], [np.inf, 1.0]])

    def test_rejects_wrong_ndim(self) -> None:
        with self.assertRaises(ValueError):
            compute(np.ones(4))
        with self.assertRaises(ValueError):
            compute(np.ones((2, 2, 2)))

    def test_non_strict_uses_leading_block(self) -> None:
        big = np.arange(20.0).reshape(4, 5)
        expected = compute(big[:3, :3])
        got = compute(big, n=3, strict=False)
        np.testing.assert_array_equal(got.real_eigenvalues(), expected.real_eigenvalues())
        np.testing.assert_array_equal(got.eigenvector_matrix(), expected.eigenvector_matrix())
        with self.assertRaises(ValueError):
            compute(big, n=3)

    def test_non_strict_still_needs_enough_entries(self) -> None:
        with self.assertRaises(ValueError):
            compute([[1.0, 2.0], [3.0]], n=2, strict=False)
        with self.assertRaises(ValueError):
            compute([[1.0, 2.0]], n=2, strict=False)

    def test_flat_row_and_column_major(self) -> None:
        rng = np.random.default_rng(2)
        A = rng.standard_normal((4, 4))
        expected = compute(A)
        row = compute_flat(A.ravel().tolist(), 4)
        col = compute_flat(A.T.ravel(), 4, column_major=True)
        for r in (row, col):
            np.testing.assert_array_equal(r.real_eigenvalues(), expected.real_eigenvalues())
            np.testing.assert_array_equal(r.eigenvector_matrix(), expected.eigenvector_matrix())

    def test_flat_length_checks(self) -> None:
        with self.assertRaises(ValueError):
            compute_flat([1.0, 2.0, 3.0], 2)
        with self.assertRaises(ValueError):
            compute_flat([1.0] * 5, 2)
        result = compute_flat([2.0, 0.0, 0.0, 3.0, 99.0], 2, strict=False)
        np.testing.assert_array_equal(result.real_eigenvalues(), [2.0, 3.0])


class TestLibraryDependencies(unittest.TestCase):
    def test_library_imports_numpy_only(self) -> None:
        import schurlas

        package_dir = os.path.dirname(schurlas.__file__)
        third_party = set()
        for name in os.listdir(package_dir):
            if not name.endswith(".py"):
                continue
            with open(os.path.join(package_dir, name)) as f:
                tree = ast.parse(f.read())
            for node in ast.walk(tree):
                if isinstance(node, ast.Import):
                    third_party.update(alias.name.split(".")[0] for alias in node.names)
                elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                    third_party.add(node.module.split(".")[0])
        self.assertNotIn("pandas", third_party)
        self.assertNotIn("matplotlib", third_party)
        self.assertIn("numpy", third_party)


if __name__ == "__main__":
    unittest.main()
